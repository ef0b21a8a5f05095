"""
Physical Constants and Unit Conversions for WRF-CMAQ Preprocessing

This module provides the physical constants used when deriving standardized
meteorological quantities from WRF output. Values follow the conventions of
the WRF model itself where they differ from CODATA recommendations.

References:
- WRF ARW Technical Note (Skamarock et al.), perturbation variable definitions
- NIST Physical Constants: https://physics.nist.gov/cuu/Constants/
- How to interpret WRF variables: http://www.openwfm.org/wiki/How_to_interpret_WRF_variables
"""

import numpy as np
from typing import Union


# =============================================================================
# PHYSICAL CONSTANTS
# =============================================================================

class PhysicalConstants:
    """
    Collection of physical constants used in WRF post-processing.

    WRF stores potential temperature as a perturbation from a 300 K base
    state, and pressure and geopotential as base state plus perturbation.
    """

    # Earth and atmospheric constants
    # Conventional standard gravity (CGPM 1901), used for geopotential to height.
    # WRF's model constant is 9.81 and some post-processors use 9.8; either
    # shifts layer heights by less than 0.1% (9.8 gives heights 0.07% higher).
    STANDARD_GRAVITY = 9.80665  # m s⁻²
    STANDARD_PRESSURE = 101325.0  # Pa (1 atm)

    # Potential temperature conversion
    REFERENCE_PRESSURE = 101300.0  # Pa, p₀ used for the Exner function
    KAPPA = 0.2854  # R_d / c_p for dry air
    BASE_POTENTIAL_TEMPERATURE = 300.0  # K, WRF base state added to T


# =============================================================================
# UNIT CONVERSION FUNCTIONS
# =============================================================================

def geopotential_to_meters(geopotential_m2_s2: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Convert geopotential to geopotential height.

    Args:
        geopotential_m2_s2: Geopotential in m² s⁻²

    Returns:
        Height in meters
    """
    return np.asarray(geopotential_m2_s2) / PhysicalConstants.STANDARD_GRAVITY


def exner_function(pressure_pa: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Ratio between ambient and potential temperature at a given pressure.

    Args:
        pressure_pa: Pressure in Pascals

    Returns:
        (p / p₀)^κ, dimensionless
    """
    return np.power(np.asarray(pressure_pa) / PhysicalConstants.REFERENCE_PRESSURE,
                    PhysicalConstants.KAPPA)
