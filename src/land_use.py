"""
Land Use Remapping

WRF-CMAQ output stores land use as a 1-based category index (LU_INDEX) over
the combined MODIS/IGBP (1-20) and NLCD (21-40) class list. Dry deposition
schemes use their own, coarser classifications, and the roughness length is
a per-class constant. All three are produced with the same elementwise table
lookup: output = table[code - 1].

Codes outside the table are an error, never clamped or defaulted, since an
unmapped category means the land use data does not match the tables.

References:
- Seinfeld & Pandis, Atmospheric Chemistry and Physics, particle dry deposition
- Wesely (1989), Atmos. Environ. 23, 1293-1304, gas dry deposition
- WRF VEGPARM.TBL, NLCD roughness lengths
"""

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from grid_producers import CombinedProducer, GridProducer
from logging_utils import ConfigurationError, LookupRangeError


class SeinfeldLandUse(IntEnum):
    """Land use categories for particle dry deposition."""
    EVERGREEN = 0
    DECIDUOUS = 1
    GRASS = 2
    DESERT = 3
    SHRUBS = 4


class WeselyLandUse(IntEnum):
    """Land use categories for gas dry deposition."""
    URBAN = 0
    AGRICULTURAL = 1
    RANGE = 2
    DECIDUOUS = 3
    CONIFEROUS = 4
    MIXED_FOREST = 5
    WATER = 6
    BARREN = 7
    WETLAND = 8
    RANGE_AG = 9
    ROCKY_SHRUBS = 10


@dataclass(frozen=True)
class LookupTable:
    """
    Fixed ordered table indexed by a 1-based category code.

    Attributes:
        name: Table name used in error messages
        values: Entry for code 1, code 2, ...
    """

    name: str
    values: Tuple[Union[int, float], ...]

    def __post_init__(self):
        if not self.values:
            raise ConfigurationError(f"Lookup table '{self.name}' is empty")

    def __len__(self) -> int:
        return len(self.values)

    def lookup(self, code: int) -> Union[int, float]:
        """Entry for a single 1-based code."""
        if not 1 <= code <= len(self.values):
            raise LookupRangeError(f"Code {code} is outside lookup table '{self.name}' (1-{len(self.values)})",
                                   {'table': self.name, 'code': code})
        return self.values[code - 1]


def remap_categories(grid: np.ndarray, table: LookupTable,
                     timestamp: Optional[datetime] = None) -> np.ndarray:
    """
    Replace every category code in a grid with its table entry.

    Args:
        grid: Grid of (float stored) integer category codes
        table: LookupTable to apply
        timestamp: Time of the grid, reported in errors

    Returns:
        np.ndarray: Grid of table entries with the input's shape

    Raises:
        LookupRangeError: If any code is <= 0, beyond the table, or not finite
    """
    codes_float = np.asarray(grid, dtype=float)
    when = f" at {timestamp.isoformat()}" if timestamp is not None else ""
    context = {'table': table.name,
               'timestamp': timestamp.isoformat() if timestamp is not None else None}

    finite = np.isfinite(codes_float)
    if not finite.all():
        location = tuple(int(i) for i in np.argwhere(~finite)[0])
        raise LookupRangeError(f"Non-finite category code at cell {location}{when} in table '{table.name}'",
                               {**context, 'cell': location})

    codes = np.rint(codes_float).astype(int)
    invalid = (codes < 1) | (codes > len(table))
    if invalid.any():
        location = tuple(int(i) for i in np.argwhere(invalid)[0])
        code = int(codes[location])
        raise LookupRangeError(
            f"Category code {code} at cell {location}{when} is outside lookup table "
            f"'{table.name}' (valid codes 1-{len(table)}, {int(invalid.sum())} invalid cells)",
            {**context, 'code': code, 'cell': location}
        )

    return np.asarray(table.values, dtype=float)[codes - 1]


class CategoricalRemapProducer(CombinedProducer):
    """Remap each grid pulled from a categorical producer through a table."""

    def __init__(self, upstream: GridProducer, table: LookupTable, name: Optional[str] = None):
        super().__init__(None, [upstream], name or table.name)
        self.table = table

    def _next_grid(self) -> np.ndarray:
        grid, = self._pull_upstreams()
        return remap_categories(grid, self.table, self.timestamp)


def _table(name: str, values: Sequence) -> LookupTable:
    return LookupTable(name, tuple(values))


# USGS/NLCD land classes to land classes for particle dry deposition
NLCD_SEINFELD = _table('nlcd_seinfeld', [
    SeinfeldLandUse.EVERGREEN,  # 'Evergreen Needleleaf Forest'
    SeinfeldLandUse.DECIDUOUS,  # 'Evergreen Broadleaf Forest'
    SeinfeldLandUse.EVERGREEN,  # 'Deciduous Needleleaf Forest'
    SeinfeldLandUse.DECIDUOUS,  # 'Deciduous Broadleaf Forest'
    SeinfeldLandUse.DECIDUOUS,  # 'Mixed Forest'
    SeinfeldLandUse.SHRUBS,     # 'Closed Shrubland'
    SeinfeldLandUse.SHRUBS,     # 'Open Shrubland'
    SeinfeldLandUse.SHRUBS,     # 'Woody Savanna'
    SeinfeldLandUse.GRASS,      # 'Savanna'
    SeinfeldLandUse.GRASS,      # 'Grassland'
    SeinfeldLandUse.GRASS,      # 'Permanent Wetland'
    SeinfeldLandUse.GRASS,      # 'Cropland'
    SeinfeldLandUse.DESERT,     # 'Urban and Built-Up'
    SeinfeldLandUse.GRASS,      # 'Cropland / Natural Veg. Mosaic'
    SeinfeldLandUse.DESERT,     # 'Permanent Snow'
    SeinfeldLandUse.DESERT,     # 'Barren / Sparsely Vegetated'
    SeinfeldLandUse.DESERT,     # 'IGBP Water'
    SeinfeldLandUse.DESERT,     # 'Unclassified'
    SeinfeldLandUse.DESERT,     # 'Fill Value'
    SeinfeldLandUse.DESERT,     # 'Unclassified'
    SeinfeldLandUse.DESERT,     # 'Open Water'
    SeinfeldLandUse.DESERT,     # 'Perennial Ice/Snow'
    SeinfeldLandUse.DESERT,     # 'Developed Open Space'
    SeinfeldLandUse.DESERT,     # 'Developed Low Intensity'
    SeinfeldLandUse.DESERT,     # 'Developed Medium Intensity'
    SeinfeldLandUse.DESERT,     # 'Developed High Intensity'
    SeinfeldLandUse.DESERT,     # 'Barren Land'
    SeinfeldLandUse.DECIDUOUS,  # 'Deciduous Forest'
    SeinfeldLandUse.EVERGREEN,  # 'Evergreen Forest'
    SeinfeldLandUse.DECIDUOUS,  # 'Mixed Forest'
    SeinfeldLandUse.SHRUBS,     # 'Dwarf Scrub'
    SeinfeldLandUse.SHRUBS,     # 'Shrub/Scrub'
    SeinfeldLandUse.GRASS,      # 'Grassland/Herbaceous'
    SeinfeldLandUse.GRASS,      # 'Sedge/Herbaceous'
    SeinfeldLandUse.DESERT,     # 'Lichens'
    SeinfeldLandUse.DESERT,     # 'Moss'
    SeinfeldLandUse.GRASS,      # 'Pasture/Hay'
    SeinfeldLandUse.GRASS,      # 'Cultivated Crops'
    SeinfeldLandUse.DECIDUOUS,  # 'Woody Wetland'
    SeinfeldLandUse.GRASS,      # 'Emergent Herbaceous Wetland'
])

# USGS/NLCD land classes to land classes for gas dry deposition
NLCD_WESELY = _table('nlcd_wesely', [
    WeselyLandUse.CONIFEROUS,    # 'Evergreen Needleleaf Forest'
    WeselyLandUse.DECIDUOUS,     # 'Evergreen Broadleaf Forest'
    WeselyLandUse.CONIFEROUS,    # 'Deciduous Needleleaf Forest'
    WeselyLandUse.DECIDUOUS,     # 'Deciduous Broadleaf Forest'
    WeselyLandUse.MIXED_FOREST,  # 'Mixed Forest'
    WeselyLandUse.ROCKY_SHRUBS,  # 'Closed Shrubland'
    WeselyLandUse.ROCKY_SHRUBS,  # 'Open Shrubland'
    WeselyLandUse.ROCKY_SHRUBS,  # 'Woody Savanna'
    WeselyLandUse.RANGE,         # 'Savanna'
    WeselyLandUse.RANGE,         # 'Grassland'
    WeselyLandUse.WETLAND,       # 'Permanent Wetland'
    WeselyLandUse.RANGE_AG,      # 'Cropland'
    WeselyLandUse.URBAN,         # 'Urban and Built-Up'
    WeselyLandUse.RANGE_AG,      # 'Cropland / Natural Veg. Mosaic'
    WeselyLandUse.BARREN,        # 'Permanent Snow'
    WeselyLandUse.BARREN,        # 'Barren / Sparsely Vegetated'
    WeselyLandUse.WATER,         # 'IGBP Water'
    WeselyLandUse.BARREN,        # 'Unclassified'
    WeselyLandUse.BARREN,        # 'Fill Value'
    WeselyLandUse.BARREN,        # 'Unclassified'
    WeselyLandUse.WATER,         # 'Open Water'
    WeselyLandUse.BARREN,        # 'Perennial Ice/Snow'
    WeselyLandUse.URBAN,         # 'Developed Open Space'
    WeselyLandUse.URBAN,         # 'Developed Low Intensity'
    WeselyLandUse.URBAN,         # 'Developed Medium Intensity'
    WeselyLandUse.URBAN,         # 'Developed High Intensity'
    WeselyLandUse.BARREN,        # 'Barren Land'
    WeselyLandUse.DECIDUOUS,     # 'Deciduous Forest'
    WeselyLandUse.CONIFEROUS,    # 'Evergreen Forest'
    WeselyLandUse.MIXED_FOREST,  # 'Mixed Forest'
    WeselyLandUse.ROCKY_SHRUBS,  # 'Dwarf Scrub'
    WeselyLandUse.ROCKY_SHRUBS,  # 'Shrub/Scrub'
    WeselyLandUse.RANGE,         # 'Grassland/Herbaceous'
    WeselyLandUse.RANGE,         # 'Sedge/Herbaceous'
    WeselyLandUse.BARREN,        # 'Lichens'
    WeselyLandUse.BARREN,        # 'Moss'
    WeselyLandUse.RANGE_AG,      # 'Pasture/Hay'
    WeselyLandUse.RANGE_AG,      # 'Cultivated Crops'
    WeselyLandUse.WETLAND,       # 'Woody Wetland'
    WeselyLandUse.WETLAND,       # 'Emergent Herbaceous Wetland'
])

# Mean roughness lengths for the same classes [m], from WRF VEGPARM.TBL.
# 999 marks classes with no defined roughness.
NLCD_Z0 = _table('nlcd_z0', [
    .50, .50, .50, .50, .35, .03, .035, .03, .15, .11,
    .30, .10, .50, .095, .001, .01, .0001, 999., 999., 999.,
    .0001, .001, .50, .70, 1.5, 2.0, .01, .50, .50, .35,
    .025, .03, .11, .20, .01, .01, .10, .06, .40, .20,
])
