"""
Gridded Output File Reader

Opens dated WRF-CMAQ NetCDF output files and extracts one record of a named
variable as a numpy array. The leading dimension of every stored variable is
the record (time) dimension; it is dropped when a record is read.

Readers are injected into grid producers, so tests and alternative file
formats only need to implement the GridReader interface.
"""

import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Optional

import numpy as np
import xarray as xr

from logging_utils import GridFileError, MissingVariableError
from time_utils import FILE_DATE_FORMAT, TimeCursor, expand_path_template


class GridReader(ABC):
    """
    Interface for reading one record of a gridded variable.

    Producers call open_file() once per file they step into, read_record()
    once per pull and close_file() when moving on or shutting down.
    """

    @abstractmethod
    def open_file(self, path_template: str, file_time: datetime) -> Any:
        """
        Open the file that starts at file_time.

        Raises:
            GridFileError: If the file is missing or unreadable
        """

    @abstractmethod
    def read_record(self, handle: Any, variable: str, record_index: int) -> np.ndarray:
        """
        Read one record of a variable from an open file.

        Raises:
            MissingVariableError: If the variable is not in the file
            GridFileError: If the record does not exist
        """

    def close_file(self, handle: Any) -> None:
        pass

    @abstractmethod
    def describe(self, path_template: str, file_time: datetime) -> str:
        """Human readable name of the file covering file_time."""

    def read(self, path_template: str, variable: str, timestamp: datetime,
             record_interval: timedelta = timedelta(hours=1),
             file_interval: timedelta = timedelta(hours=24)) -> np.ndarray:
        """
        Read a single variable at a single timestamp.

        Files are assumed to be aligned to midnight of the timestamp's day.

        Args:
            path_template: Path with [DATE] placeholder
            variable: Variable name
            timestamp: Time of the record
            record_interval: Time between records within a file
            file_interval: Time spanned by one file

        Returns:
            np.ndarray: The record, without its time dimension
        """
        origin = timestamp.replace(hour=0, minute=0, second=0, microsecond=0)
        cursor = TimeCursor(origin, timestamp, record_interval, file_interval)
        handle = self.open_file(path_template, cursor.file_start(timestamp))
        try:
            return self.read_record(handle, variable, cursor.record_index(timestamp))
        finally:
            self.close_file(handle)

    @abstractmethod
    def dimension_length(self, path_template: str, start_time: datetime,
                         dimension_index: int, variable: str = "ALT") -> int:
        """Length of one dimension of a variable in the file covering start_time."""


class NetCDFGridReader(GridReader):
    """
    Read WRF-CMAQ NetCDF output files with xarray.

    Args:
        date_format: strftime format substituted for [DATE] in path templates
        engine: Optional xarray backend engine (e.g. 'netcdf4')
    """

    def __init__(self, date_format: str = FILE_DATE_FORMAT, engine: Optional[str] = None):
        self.date_format = date_format
        self.engine = engine
        self.logger = logging.getLogger(self.__class__.__name__)

    def describe(self, path_template: str, file_time: datetime) -> str:
        return expand_path_template(path_template, file_time, self.date_format)

    def open_file(self, path_template: str, file_time: datetime) -> xr.Dataset:
        filepath = self.describe(path_template, file_time)
        if not os.path.exists(filepath):
            raise GridFileError(f"Output file not found: {filepath}",
                                {'file': filepath, 'file_time': file_time.isoformat()})

        try:
            dataset = xr.open_dataset(filepath, decode_times=False, engine=self.engine)
        except (OSError, ValueError, RuntimeError) as e:
            raise GridFileError(f"Could not open {filepath}: {e}",
                                {'file': filepath, 'file_time': file_time.isoformat()}) from e

        self.logger.debug(f"Opened {filepath}")
        return dataset

    def read_record(self, handle: xr.Dataset, variable: str, record_index: int) -> np.ndarray:
        source = handle.encoding.get('source', '<unknown>')
        if variable not in handle.variables:
            available_vars = sorted(handle.data_vars.keys())
            raise MissingVariableError(f"Variable '{variable}' not found in {source}. Available: {available_vars}",
                                       {'file': source, 'variable': variable})

        data = handle[variable]
        if data.ndim == 0:
            raise GridFileError(f"Variable '{variable}' in {source} has no record dimension",
                                {'file': source, 'variable': variable})

        num_records = data.shape[0]
        if record_index >= num_records:
            raise GridFileError(
                f"Variable '{variable}' in {source} has {num_records} records, "
                f"record {record_index} requested",
                {'file': source, 'variable': variable, 'record_index': record_index}
            )

        try:
            record = data.isel({data.dims[0]: record_index}).values
        except (OSError, ValueError, RuntimeError) as e:
            raise GridFileError(f"Could not read '{variable}' from {source}: {e}",
                                {'file': source, 'variable': variable}) from e

        return np.array(record, dtype=float)

    def close_file(self, handle: xr.Dataset) -> None:
        handle.close()

    def dimension_length(self, path_template: str, start_time: datetime,
                         dimension_index: int, variable: str = "ALT") -> int:
        dataset = self.open_file(path_template, start_time)
        try:
            source = dataset.encoding.get('source', '<unknown>')
            if variable not in dataset.variables:
                raise MissingVariableError(f"Variable '{variable}' not found in {source}",
                                           {'file': source, 'variable': variable})
            shape = dataset[variable].shape
            if not 0 <= dimension_index < len(shape):
                raise GridFileError(
                    f"Variable '{variable}' in {source} has {len(shape)} dimensions, "
                    f"dimension {dimension_index} requested",
                    {'file': source, 'variable': variable}
                )
            return int(shape[dimension_index])
        finally:
            dataset.close()
