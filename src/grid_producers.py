"""
Lazy Grid Producers

A grid producer is a forward-only iterator of numpy grids, one per record of
the configured time window. Pulling a raw VariableProducer advances its own
TimeCursor by one record and reads the variable from whichever dated file
covers the new timestamp, opening files as it crosses their boundaries.
CombinedProducer lifts a pure elementwise function over one or more upstream
producers so derived quantities are produced with the same contract.

Contract:
- pull() (or next()) returns the next grid
- StopIteration signals the end of the window, never an error
- a failed pull raises a PreprocessorError and halts the producer; any
  later pull raises ProducerHaltedError
- producers are never rewound; build a new one to start over

Example:
    >>> cursor = TimeCursor(start, end, timedelta(hours=1), timedelta(hours=24))
    >>> pressure = combine(total_pressure,
    ...                    VariableProducer(reader, template, "P", cursor_p),
    ...                    VariableProducer(reader, template, "PB", cursor_pb),
    ...                    name="P")
    >>> for grid in pressure:
    ...     consume(grid)
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence

import numpy as np

from grid_reader import GridReader
from logging_utils import (
    ProducerHaltedError,
    ProgressSink,
    ShapeMismatchError,
    error_context,
    notify,
)
from time_utils import TimeCursor


class GridProducer(ABC):
    """Base class for lazy, finite, forward-only sequences of grids."""

    def __init__(self, name: str):
        self.name = name
        self.timestamp: Optional[datetime] = None
        self._failure: Optional[BaseException] = None

    def __iter__(self):
        return self

    def __next__(self) -> np.ndarray:
        return self.pull()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def halted(self) -> bool:
        return self._failure is not None

    def pull(self) -> np.ndarray:
        """
        Return the next grid.

        Raises:
            StopIteration: When the time window is exhausted
            ProducerHaltedError: If an earlier pull failed
            PreprocessorError: If reading or deriving the grid fails
        """
        if self._failure is not None:
            raise ProducerHaltedError(
                f"Producer '{self.name}' halted after an earlier failure: {self._failure}",
                {'producer': self.name}
            ) from self._failure

        try:
            return self._next_grid()
        except StopIteration:
            self.close()
            raise
        except Exception as e:
            self._failure = e
            self.close()
            raise

    @abstractmethod
    def _next_grid(self) -> np.ndarray:
        """Produce the next grid, raising StopIteration at the end."""

    def close(self) -> None:
        """Release any resources held by the producer."""

    def __repr__(self):
        return f"{self.__class__.__name__}(name={self.name!r})"


class VariableProducer(GridProducer):
    """
    Read one raw variable record by record across dated files.

    Args:
        reader: GridReader used to open files and read records
        path_template: File path with [DATE] placeholder
        variable: Name of the stored variable
        cursor: TimeCursor owned exclusively by this producer
        progress_sink: Optional sink told about every file opened
    """

    def __init__(self, reader: GridReader, path_template: str, variable: str,
                 cursor: TimeCursor, progress_sink: Optional[ProgressSink] = None):
        super().__init__(variable)
        self.reader = reader
        self.path_template = path_template
        self.variable = variable
        self.cursor = cursor
        self.progress_sink = progress_sink
        self.logger = logging.getLogger(self.__class__.__name__)

        self._handle: Any = None
        self._file_time: Optional[datetime] = None

    def _next_grid(self) -> np.ndarray:
        timestamp = self.cursor.advance()
        file_time = self.cursor.file_start(timestamp)
        if file_time != self._file_time:
            self._open(file_time)

        record_index = self.cursor.record_index(timestamp)
        with error_context(f"reading {self.variable}", variable=self.variable,
                           timestamp=timestamp.isoformat(), record_index=record_index):
            grid = self.reader.read_record(self._handle, self.variable, record_index)

        self.timestamp = timestamp
        return grid

    def _open(self, file_time: datetime) -> None:
        self.close()
        filename = self.reader.describe(self.path_template, file_time)
        notify(self.progress_sink, f"Reading {self.variable} from {filename}")
        self.logger.debug(f"Opening {filename} for {self.variable}")

        with error_context(f"opening {filename}", variable=self.variable,
                           file_time=file_time.isoformat()):
            self._handle = self.reader.open_file(self.path_template, file_time)
        self._file_time = file_time

    def close(self) -> None:
        if self._handle is not None:
            handle, self._handle = self._handle, None
            self._file_time = None
            self.reader.close_file(handle)


def check_shapes(grids: Sequence[np.ndarray], names: Sequence[str], target: str) -> None:
    """
    Ensure all grids share one shape.

    Raises:
        ShapeMismatchError: Listing every input's shape
    """
    shapes = [np.shape(grid) for grid in grids]
    if any(shape != shapes[0] for shape in shapes[1:]):
        described = ", ".join(f"{name}={shape}" for name, shape in zip(names, shapes))
        raise ShapeMismatchError(f"Cannot derive {target}: input shapes differ ({described})",
                                 {'target': target, 'shapes': dict(zip(names, shapes))})


class CombinedProducer(GridProducer):
    """
    Lift a pure elementwise function over upstream producers.

    Each pull pulls every upstream once, in declaration order, checks that
    all grids share a shape, then applies the function.

    Args:
        func: Function of as many grids as there are upstreams
        upstreams: Producers whose grids feed func
        name: Name of the derived quantity
    """

    def __init__(self, func: Callable[..., np.ndarray], upstreams: Sequence[GridProducer], name: str):
        super().__init__(name)
        if not upstreams:
            raise ValueError(f"Derived quantity '{name}' needs at least one upstream producer")
        self.func = func
        self.upstreams: List[GridProducer] = list(upstreams)

    def _pull_upstreams(self) -> List[np.ndarray]:
        grids = []
        for upstream in self.upstreams:
            grids.append(upstream.pull())
        self.timestamp = self.upstreams[0].timestamp
        check_shapes(grids, [upstream.name for upstream in self.upstreams], self.name)
        return grids

    def _next_grid(self) -> np.ndarray:
        grids = self._pull_upstreams()
        timestamp = self.timestamp.isoformat() if self.timestamp is not None else None
        with error_context(f"deriving {self.name}", quantity=self.name, timestamp=timestamp):
            return self.func(*grids)

    def close(self) -> None:
        for upstream in self.upstreams:
            upstream.close()


def combine(func: Callable[..., np.ndarray], *upstreams: GridProducer,
            name: Optional[str] = None) -> CombinedProducer:
    """
    Build a derived producer from a pure function and its inputs.

    Args:
        func: Elementwise function taking one grid per upstream
        *upstreams: Input producers, pulled in the given order
        name: Name of the result (defaults to the function name)

    Returns:
        CombinedProducer
    """
    return CombinedProducer(func, upstreams, name or func.__name__)
