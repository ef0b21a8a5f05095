"""
Atmospheric Science Calculations for WRF-CMAQ Preprocessing

Pure elementwise functions that turn the perturbation and base-state fields
stored by WRF into the physical quantities the downstream air quality model
expects. Every function takes and returns plain numpy arrays; lifting them
over lazy grid producers happens in grid_producers.combine().

Scientific Context:
WRF splits several state variables into a time-invariant base state and a
perturbation. Pressure and geopotential are recovered by adding the two,
ambient temperature by converting potential temperature with the Exner
function, and layer heights by differencing geopotential against the
surface level of the same column.

References:
- http://www.openwfm.org/wiki/How_to_interpret_WRF_variables
"""

import numpy as np

from logging_utils import ShapeMismatchError
from units_constants import PhysicalConstants, exner_function, geopotential_to_meters


def total_pressure(perturbation_pressure: np.ndarray,
                   base_pressure: np.ndarray) -> np.ndarray:
    """
    Calculate full pressure from WRF perturbation and base state pressure.

    Args:
        perturbation_pressure: Perturbation pressure P [Pa]
        base_pressure: Base state pressure PB [Pa]

    Returns:
        Pressure [Pa]
    """
    return np.add(base_pressure, perturbation_pressure, dtype=float)


def theta_perturbation_to_temperature(theta_perturbation: np.ndarray,
                                      pressure_pa: np.ndarray) -> np.ndarray:
    """
    Convert perturbation potential temperature to ambient temperature.

    Scientific Background:
    WRF stores T as potential temperature minus a 300 K base state. The
    potential temperature θ = T + 300 is converted to ambient temperature
    with the Exner function: T_amb = θ · (p / p₀)^κ, with p₀ = 101300 Pa and
    κ = 0.2854. At p = p₀ the correction is exactly 1.

    Args:
        theta_perturbation: Perturbation potential temperature θ' [K]
        pressure_pa: Pressure [Pa], same shape as theta_perturbation

    Returns:
        Ambient temperature [K]

    Example:
        >>> theta_perturbation_to_temperature(np.array([0.0]), np.array([101300.0]))
        array([300.])
    """
    theta = np.asarray(theta_perturbation, dtype=float) + PhysicalConstants.BASE_POTENTIAL_TEMPERATURE
    return theta * exner_function(pressure_pa)


def geopotential_to_height(perturbation_geopotential: np.ndarray,
                           base_geopotential: np.ndarray) -> np.ndarray:
    """
    Calculate layer heights above ground from WRF geopotential.

    Height at layer k, row j, column i is the full geopotential (PH + PHB)
    at that point minus the full geopotential of layer 0 in the same column,
    divided by gravitational acceleration. Layer 0 is therefore always 0 and
    columns never influence each other.

    Args:
        perturbation_geopotential: PH [m² s⁻²], shape (layer, row, column)
        base_geopotential: PHB [m² s⁻²], same shape

    Returns:
        Layer heights above ground [m]

    Raises:
        ShapeMismatchError: If the grids are not (layer, row, column)
    """
    geopotential = np.add(perturbation_geopotential, base_geopotential, dtype=float)
    if geopotential.ndim != 3:
        raise ShapeMismatchError(f"Geopotential must be (layer, row, column), got shape {geopotential.shape}",
                                 {'target': 'height', 'shape': geopotential.shape})
    return geopotential_to_meters(geopotential - geopotential[0:1, :, :])


def downwelling_radiation(shortwave: np.ndarray, longwave: np.ndarray) -> np.ndarray:
    """
    Total downwelling radiation at ground level.

    Args:
        shortwave: Downwelling short wave radiation SWDOWN [W/m²]
        longwave: Downwelling long wave radiation GLW [W/m²]

    Returns:
        Total downwelling radiation [W/m²]
    """
    return np.add(shortwave, longwave, dtype=float)
