"""
WRF-CMAQ Preprocessor - Lazy Gridded Output Access

This package turns sequences of dated WRF-CMAQ output files into lazy,
time-windowed producers of standardized quantities for air quality models.

Grid Access:
- Time cursors stepping across dated files one record at a time
- NetCDF grid reader with distinct missing-file and missing-variable errors
- Restartable producers, one fresh chain per requested quantity

Derived Quantities:
- Pressure, temperature, layer height and downwelling radiation
- Weighted chemical species aggregates
- Land use remapping for dry deposition and roughness length
"""

__version__ = "1.0.0"
__author__ = "WRF-CMAQ Preprocessor Development Team"
