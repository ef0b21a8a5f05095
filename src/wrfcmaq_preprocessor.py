"""
WRF-CMAQ Preprocessor

Entry point that turns a sequence of dated WRF-CMAQ output files into lazy
producers of the standardized quantities an air quality model consumes.

Every accessor builds a new producer chain, with its own time cursors,
starting at the configured start time. Accessors are cheap factories: call
one again to start the sequence over, and never hand one producer to two
consumers.

Example:
    >>> preprocessor = WRFCmaqPreprocessor("./DATA/wrfcmaq_[DATE].nc", "20050101", "20050103")
    >>> for temperature in preprocessor.t():
    ...     print(temperature.mean())
"""

import logging
from typing import Callable, Dict, Optional

from atmospheric_science import (
    downwelling_radiation,
    geopotential_to_height,
    theta_perturbation_to_temperature,
    total_pressure,
)
from cmaq_variables import CMAQ_SPECIES_GROUPS, QUANTITY_REGISTRY
from config_manager import PreprocessorConfig
from grid_producers import GridProducer, VariableProducer, combine
from grid_reader import GridReader, NetCDFGridReader
from land_use import NLCD_SEINFELD, NLCD_WESELY, NLCD_Z0, CategoricalRemapProducer
from logging_utils import ConfigurationError, LoggingProgressSink, ProgressSink
from time_utils import DATE_PLACEHOLDER, TimeCursor, parse_date, parse_duration
from variable_groups import VariableGroup, VariableGroupProducer

# Variable whose dimensions define the grid extents: (time, bottom_top, south_north, west_east)
EXTENT_VARIABLE = "ALT"


class WRFCmaqPreprocessor:
    """
    Preprocessor for WRF-CMAQ output.

    Args:
        path_template: Location of the output files, with [DATE] standing in
            for the date each file starts on
        start_date: First day of the simulation, "YYYYMMDD"
        end_date: Day the simulation stops, "YYYYMMDD" (exclusive)
        record_interval: Time between records, e.g. "1h"
        file_interval: Time spanned by one file, e.g. "24h"
        progress_sink: Optional receiver of progress messages
        reader: GridReader for the files (NetCDF by default)
        species_groups: Overrides for the default chemistry aggregates

    Raises:
        ConfigurationError: If dates, intervals or the template are malformed
    """

    def __init__(self, path_template: str, start_date: str, end_date: str,
                 record_interval: str = "1h", file_interval: str = "24h",
                 progress_sink: Optional[ProgressSink] = None,
                 reader: Optional[GridReader] = None,
                 species_groups: Optional[Dict[str, VariableGroup]] = None):
        if not path_template or DATE_PLACEHOLDER not in path_template:
            raise ConfigurationError(f"Path template must contain {DATE_PLACEHOLDER}: {path_template!r}",
                                     {'path_template': path_template})

        self.path_template = path_template
        self.start = parse_date(start_date, "start date")
        self.end = parse_date(end_date, "end date")
        self.record_interval = parse_duration(record_interval, "record interval")
        self.file_interval = parse_duration(file_interval, "file interval")
        self.progress_sink = progress_sink
        self.reader = reader or NetCDFGridReader()
        reserved = sorted(name for name in (species_groups or {}) if name in QUANTITY_REGISTRY)
        if reserved:
            raise ConfigurationError(f"Species groups {reserved} would shadow meteorology or land use quantities",
                                     {'species_groups': reserved})
        self.species_groups = dict(CMAQ_SPECIES_GROUPS)
        self.species_groups.update(species_groups or {})
        self.logger = logging.getLogger(self.__class__.__name__)

        # Validates the window and intervals once, up front
        self._new_cursor()

        self.logger.info(f"WRF-CMAQ preprocessor for {path_template}: "
                         f"{self.start:%Y-%m-%d} to {self.end:%Y-%m-%d}, "
                         f"records every {self.record_interval}, files every {self.file_interval}")

    @classmethod
    def from_config(cls, config: PreprocessorConfig,
                    progress_sink: Optional[ProgressSink] = None,
                    reader: Optional[GridReader] = None) -> "WRFCmaqPreprocessor":
        """
        Build a preprocessor from a PreprocessorConfig.

        Progress is logged through a LoggingProgressSink unless a sink is given
        or processing.report_progress is false.
        """
        input_config = config.get_input_config()
        if progress_sink is None and config.get('processing.report_progress', True):
            progress_sink = LoggingProgressSink()

        return cls(
            path_template=config.require('input.path_template'),
            start_date=config.require('input.start_date'),
            end_date=config.require('input.end_date'),
            record_interval=input_config.get('record_interval', '1h'),
            file_interval=input_config.get('file_interval', '24h'),
            progress_sink=progress_sink,
            reader=reader or NetCDFGridReader(date_format=input_config.get('date_format', '%Y-%m-%d')),
            species_groups=config.get_species_groups(),
        )

    # ------------------------------------------------------------------
    # Producer construction
    # ------------------------------------------------------------------

    def _new_cursor(self) -> TimeCursor:
        return TimeCursor(self.start, self.end, self.record_interval, self.file_interval)

    def read(self, variable: str) -> VariableProducer:
        """Fresh producer of one stored variable over the whole window."""
        return VariableProducer(self.reader, self.path_template, variable,
                                self._new_cursor(), self.progress_sink)

    def read_group(self, group: VariableGroup) -> VariableGroupProducer:
        """Fresh producer of a weighted sum of stored variables."""
        return VariableGroupProducer(group, self.read)

    def _species(self, name: str) -> VariableGroupProducer:
        try:
            group = self.species_groups[name]
        except KeyError:
            raise ConfigurationError(f"No species group configured for '{name}'", {'quantity': name})
        return self.read_group(group)

    def producer(self, quantity: str) -> GridProducer:
        """
        Fresh producer for a quantity by name (e.g. 't', 'total_pm25').

        Raises:
            KeyError: If the quantity is unknown
        """
        if quantity in self.species_groups:
            return self._species(quantity)
        if quantity not in QUANTITY_REGISTRY:
            raise KeyError(f"Unknown quantity '{quantity}'. "
                           f"Available: {sorted(QUANTITY_REGISTRY) + sorted(self.species_groups)}")
        accessor: Callable[[], GridProducer] = getattr(self, quantity)
        return accessor()

    # ------------------------------------------------------------------
    # Grid extents
    # ------------------------------------------------------------------

    def num_records(self) -> int:
        """Number of records every producer yields before it is exhausted."""
        return self._new_cursor().remaining()

    def nx(self) -> int:
        """Number of grid cells in the west-east direction."""
        return self.reader.dimension_length(self.path_template, self.start, 3, EXTENT_VARIABLE)

    def ny(self) -> int:
        """Number of grid cells in the south-north direction."""
        return self.reader.dimension_length(self.path_template, self.start, 2, EXTENT_VARIABLE)

    def nz(self) -> int:
        """Number of grid cells in the below-above direction."""
        return self.reader.dimension_length(self.path_template, self.start, 1, EXTENT_VARIABLE)

    # ------------------------------------------------------------------
    # Meteorology
    # ------------------------------------------------------------------

    def pblh(self) -> GridProducer:
        """Planetary boundary layer height [m]."""
        return self.read("PBLH")

    def height(self) -> GridProducer:
        """
        Layer heights above ground level [m], from geopotential.

        See http://www.openwfm.org/wiki/How_to_interpret_WRF_variables.
        """
        return combine(geopotential_to_height,
                       self.read("PH"),   # perturbation geopotential [m2/s2]
                       self.read("PHB"),  # baseline geopotential [m2/s2]
                       name="height")

    def alt(self) -> GridProducer:
        """Inverse air density [m3/kg]."""
        return self.read("ALT")

    def u(self) -> GridProducer:
        """West-east wind speed [m/s]."""
        return self.read("U")

    def v(self) -> GridProducer:
        """South-north wind speed [m/s]."""
        return self.read("V")

    def w(self) -> GridProducer:
        """Below-above wind speed [m/s]."""
        return self.read("W")

    def surface_heat_flux(self) -> GridProducer:
        """Heat flux at the surface [W/m2]."""
        return self.read("HFX")

    def ustar(self) -> GridProducer:
        """Friction velocity [m/s]."""
        return self.read("UST")

    def p(self) -> GridProducer:
        """Pressure [Pa]."""
        return combine(total_pressure,
                       self.read("P"),   # perturbation pressure [Pa]
                       self.read("PB"),  # baseline pressure [Pa]
                       name="p")

    def t(self) -> GridProducer:
        """Temperature [K]."""
        return combine(theta_perturbation_to_temperature,
                       self.read("T"),  # perturbation potential temperature [K]
                       self.p(),
                       name="t")

    def qrain(self) -> GridProducer:
        """Rain mass fraction [kg/kg]."""
        return self.read("QRAIN")

    def cloud_frac(self) -> GridProducer:
        """Fraction of each grid cell filled with clouds [volume/volume]."""
        return self.read("CLDFRA")

    def qcloud(self) -> GridProducer:
        """Mass fraction of cloud water in each grid cell [mass/mass]."""
        return self.read("QCLOUD")

    def radiation_down(self) -> GridProducer:
        """Total downwelling radiation at ground level [W/m2]."""
        return combine(downwelling_radiation,
                       self.read("SWDOWN"),
                       self.read("GLW"),
                       name="radiation_down")

    def sw_down(self) -> GridProducer:
        """Downwelling short wave radiation at ground level [W/m2]."""
        return self.read("SWDOWN")

    def glw(self) -> GridProducer:
        """Downwelling long wave radiation at ground level [W/m2]."""
        return self.read("GLW")

    # ------------------------------------------------------------------
    # Chemistry
    # ------------------------------------------------------------------

    def ho(self) -> GridProducer:
        """Hydroxyl radical concentration [ppmv]."""
        return self.read("oh")

    def h2o2(self) -> GridProducer:
        """Hydrogen peroxide concentration [ppmv]."""
        return self.read("h2o2")

    def avoc(self) -> GridProducer:
        return self._species("avoc")

    def bvoc(self) -> GridProducer:
        return self._species("bvoc")

    def nox(self) -> GridProducer:
        return self._species("nox")

    def sox(self) -> GridProducer:
        return self._species("sox")

    def nh3(self) -> GridProducer:
        return self._species("nh3")

    def asoa(self) -> GridProducer:
        return self._species("asoa")

    def bsoa(self) -> GridProducer:
        return self._species("bsoa")

    def pno(self) -> GridProducer:
        return self._species("pno")

    def ps(self) -> GridProducer:
        return self._species("ps")

    def pnh(self) -> GridProducer:
        return self._species("pnh")

    def total_pm25(self) -> GridProducer:
        """Total mass of PM2.5 [μg/m3]."""
        return self._species("total_pm25")

    # ------------------------------------------------------------------
    # Land use
    # ------------------------------------------------------------------

    def seinfeld_land_use(self) -> GridProducer:
        """Land use categories for particle dry deposition (SeinfeldLandUse values)."""
        return CategoricalRemapProducer(self.read("LU_INDEX"), NLCD_SEINFELD, name="seinfeld_land_use")

    def wesely_land_use(self) -> GridProducer:
        """Land use categories for gas dry deposition (WeselyLandUse values)."""
        return CategoricalRemapProducer(self.read("LU_INDEX"), NLCD_WESELY, name="wesely_land_use")

    def z0(self) -> GridProducer:
        """Roughness length [m]."""
        return CategoricalRemapProducer(self.read("LU_INDEX"), NLCD_Z0, name="z0")
