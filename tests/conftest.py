"""
Shared fixtures for WRF-CMAQ preprocessor tests.

Provides an in-memory GridReader for producer tests and a writer for small
dated NetCDF files for reader and end-to-end tests.
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path

import numpy as np
import pytest

sys.path.append(str(Path(__file__).parent.parent / "src"))

from grid_reader import GridReader
from logging_utils import GridFileError, MissingVariableError
from time_utils import expand_path_template


class InMemoryGridReader(GridReader):
    """
    GridReader over {file_time: {variable: array with leading record dim}}.

    Records every file opened and closed so tests can check file stepping.
    """

    def __init__(self, files):
        self.files = files
        self.opened = []
        self.closed = 0

    def describe(self, path_template, file_time):
        return expand_path_template(path_template, file_time)

    def open_file(self, path_template, file_time):
        self.opened.append(file_time)
        if file_time not in self.files:
            raise GridFileError(f"Output file not found: {self.describe(path_template, file_time)}")
        return self.files[file_time]

    def read_record(self, handle, variable, record_index):
        if variable not in handle:
            raise MissingVariableError(f"Variable '{variable}' not found")
        return np.array(handle[variable][record_index], dtype=float)

    def close_file(self, handle):
        self.closed += 1

    def dimension_length(self, path_template, start_time, dimension_index, variable="ALT"):
        return self.files[start_time][variable].shape[dimension_index]


def constant_files(start, days, records_per_file, variables):
    """
    Files holding constant grids per variable.

    Args:
        start: First file time
        days: Number of daily files
        records_per_file: Records in each file
        variables: {name: (value, shape)}
    """
    files = {}
    for day in range(days):
        file_time = start + timedelta(days=day)
        files[file_time] = {
            name: np.full((records_per_file,) + tuple(shape), value, dtype=float)
            for name, (value, shape) in variables.items()
        }
    return files


@pytest.fixture
def start_time():
    return datetime(2005, 1, 1)


@pytest.fixture
def make_reader():
    """Factory for InMemoryGridReader instances."""
    return InMemoryGridReader


@pytest.fixture
def make_constant_files():
    return constant_files


@pytest.fixture
def write_netcdf_day(tmp_path):
    """
    Write one daily WRF-CMAQ style NetCDF file into tmp_path.

    Returns a function (day, variables, records) -> path, where variables maps
    a name to (dims, data) with data already carrying the Time dimension.
    """
    xr = pytest.importorskip("xarray")
    pytest.importorskip("netCDF4")

    def _write(day, variables):
        path = tmp_path / f"wrfcmaq_{day:%Y-%m-%d}.nc"
        dataset = xr.Dataset({name: (dims, np.asarray(data, dtype=float))
                              for name, (dims, data) in variables.items()})
        dataset.to_netcdf(path, engine="netcdf4")
        return path

    return _write
