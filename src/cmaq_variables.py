"""
WRF-CMAQ Variable Registry

Single source of truth for the quantities the preprocessor exposes, the
stored WRF-CMAQ variables each one is built from, and the default species
groups used for the chemistry aggregates.

The chemistry variables (TotalPM25, gS, gNO, ...) are the lumped species
written by the CMAQ post-processing step, so every default group holds a
single member with weight 1. Datasets that store individual species instead
override the groups through configuration (see config_manager.py).
"""

from typing import Any, Dict, List, Mapping, Optional

from variable_groups import VariableGroup


CMAQ_CONCENTRATION_UNITS = 'μg/m³'

# Default species groups, keyed by facade accessor name
CMAQ_SPECIES_GROUPS: Dict[str, VariableGroup] = {
    'total_pm25': VariableGroup('total_pm25', (('TotalPM25', 1.0),), CMAQ_CONCENTRATION_UNITS),
    'sox': VariableGroup('sox', (('gS', 1.0),), CMAQ_CONCENTRATION_UNITS),
    'nox': VariableGroup('nox', (('gNO', 1.0),), CMAQ_CONCENTRATION_UNITS),
    'nh3': VariableGroup('nh3', (('gNH', 1.0),), CMAQ_CONCENTRATION_UNITS),
    'avoc': VariableGroup('avoc', (('aVOC', 1.0),), CMAQ_CONCENTRATION_UNITS),
    'bvoc': VariableGroup('bvoc', (('bVOC', 1.0),), CMAQ_CONCENTRATION_UNITS),
    'asoa': VariableGroup('asoa', (('aSOA', 1.0),), CMAQ_CONCENTRATION_UNITS),
    'bsoa': VariableGroup('bsoa', (('bSOA', 1.0),), CMAQ_CONCENTRATION_UNITS),
    'pno': VariableGroup('pno', (('pNO', 1.0),), CMAQ_CONCENTRATION_UNITS),
    'ps': VariableGroup('ps', (('pS', 1.0),), CMAQ_CONCENTRATION_UNITS),
    'pnh': VariableGroup('pnh', (('pNH', 1.0),), CMAQ_CONCENTRATION_UNITS),
}

# Meteorology quantities, keyed by facade accessor name
QUANTITY_REGISTRY: Dict[str, Dict[str, Any]] = {

    # ========== Raw meteorology ==========

    'pblh': {'sources': ['PBLH'], 'units': 'm', 'description': 'Planetary boundary layer height'},
    'alt': {'sources': ['ALT'], 'units': 'm³/kg', 'description': 'Inverse air density'},
    'u': {'sources': ['U'], 'units': 'm/s', 'description': 'West-east wind speed'},
    'v': {'sources': ['V'], 'units': 'm/s', 'description': 'South-north wind speed'},
    'w': {'sources': ['W'], 'units': 'm/s', 'description': 'Below-above wind speed'},
    'surface_heat_flux': {'sources': ['HFX'], 'units': 'W/m²', 'description': 'Heat flux at the surface'},
    'ustar': {'sources': ['UST'], 'units': 'm/s', 'description': 'Friction velocity'},
    'ho': {'sources': ['oh'], 'units': 'ppmv', 'description': 'Hydroxyl radical concentration'},
    'h2o2': {'sources': ['h2o2'], 'units': 'ppmv', 'description': 'Hydrogen peroxide concentration'},
    'qrain': {'sources': ['QRAIN'], 'units': 'kg/kg', 'description': 'Rain mass fraction'},
    'cloud_frac': {'sources': ['CLDFRA'], 'units': '1', 'description': 'Cloud volume fraction'},
    'qcloud': {'sources': ['QCLOUD'], 'units': 'kg/kg', 'description': 'Cloud water mass fraction'},
    'sw_down': {'sources': ['SWDOWN'], 'units': 'W/m²',
                'description': 'Downwelling short wave radiation at ground level'},
    'glw': {'sources': ['GLW'], 'units': 'W/m²',
            'description': 'Downwelling long wave radiation at ground level'},

    # ========== Derived meteorology ==========

    'p': {'sources': ['PB', 'P'], 'units': 'Pa', 'description': 'Pressure (base state + perturbation)'},
    't': {'sources': ['T', 'PB', 'P'], 'units': 'K',
          'description': 'Temperature from perturbation potential temperature and pressure'},
    'height': {'sources': ['PH', 'PHB'], 'units': 'm',
               'description': 'Layer height above ground from geopotential'},
    'radiation_down': {'sources': ['SWDOWN', 'GLW'], 'units': 'W/m²',
                       'description': 'Total downwelling radiation at ground level'},

    # ========== Land use ==========

    'seinfeld_land_use': {'sources': ['LU_INDEX'], 'units': 'category',
                          'description': 'Land use class for particle dry deposition (Seinfeld & Pandis)'},
    'wesely_land_use': {'sources': ['LU_INDEX'], 'units': 'category',
                        'description': 'Land use class for gas dry deposition (Wesely 1989)'},
    'z0': {'sources': ['LU_INDEX'], 'units': 'm', 'description': 'Roughness length'},
}


def get_quantity_names(species_groups: Optional[Mapping[str, VariableGroup]] = None) -> List[str]:
    """
    All quantity names, meteorology first, then species groups.

    Args:
        species_groups: Groups in effect (defaults to CMAQ_SPECIES_GROUPS),
            e.g. PreprocessorConfig.get_species_groups()
    """
    groups = CMAQ_SPECIES_GROUPS if species_groups is None else species_groups
    return list(QUANTITY_REGISTRY) + list(groups)


def describe_quantity(name: str,
                      species_groups: Optional[Mapping[str, VariableGroup]] = None) -> Dict[str, Any]:
    """
    Metadata for one quantity.

    Raises:
        KeyError: If the quantity is unknown
    """
    groups = CMAQ_SPECIES_GROUPS if species_groups is None else species_groups
    if name in QUANTITY_REGISTRY:
        return QUANTITY_REGISTRY[name]
    if name in groups:
        group = groups[name]
        return {'sources': list(group.variables), 'units': group.units,
                'description': f"Weighted sum of {', '.join(group.variables)}"}
    raise KeyError(f"Unknown quantity '{name}'. Available: {get_quantity_names(groups)}")
