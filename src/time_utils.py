"""
Time Axis Utilities

Provides date and interval parsing and the TimeCursor that walks a time
window one record at a time across a sequence of dated output files.

Conventions:
The time window is half open, [start, end): a cursor built with
start == end yields no records. A timestamp exactly on a file boundary
belongs to the file that starts there, never to the preceding one.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Union

from logging_utils import ConfigurationError

# Input date format, e.g. "20050101"
INPUT_DATE_FORMAT = "%Y%m%d"

# Date format substituted into file templates, e.g. "2005-01-01"
FILE_DATE_FORMAT = "%Y-%m-%d"

# Placeholder for the file date in path templates
DATE_PLACEHOLDER = "[DATE]"

_DURATION_PATTERN = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(h|ms|m|s)")
_DURATION_UNITS = {
    'h': timedelta(hours=1),
    'm': timedelta(minutes=1),
    's': timedelta(seconds=1),
    'ms': timedelta(milliseconds=1),
}


def parse_date(date_string: str, label: str = "date") -> datetime:
    """
    Parse an 8-digit YYYYMMDD date string.

    Args:
        date_string: Date such as "20050101"
        label: Name used in the error message (e.g. 'start date')

    Returns:
        datetime: Midnight of the given day

    Raises:
        ConfigurationError: If the string is not a valid 8-digit date
    """
    if isinstance(date_string, datetime):
        return date_string
    text = str(date_string).strip()
    if not re.fullmatch(r"\d{8}", text):
        raise ConfigurationError(f"{label} must be an 8-digit YYYYMMDD string, got '{date_string}'",
                                 {'value': date_string})
    try:
        return datetime.strptime(text, INPUT_DATE_FORMAT)
    except ValueError as e:
        raise ConfigurationError(f"Invalid {label} '{date_string}': {e}", {'value': date_string}) from e


def parse_duration(duration: Union[str, timedelta], label: str = "interval") -> timedelta:
    """
    Parse a duration string made of number+unit terms.

    Recognized units are h, m, s and ms; terms may be combined
    ("1h30m"). A timedelta is returned unchanged after validation.

    Args:
        duration: Duration such as "1h" or "24h"
        label: Name used in the error message

    Returns:
        timedelta: Parsed, strictly positive duration

    Raises:
        ConfigurationError: If the string is malformed or not positive
    """
    if isinstance(duration, timedelta):
        parsed = duration
    else:
        text = str(duration).strip()
        if not text or _DURATION_PATTERN.sub("", text) != "":
            raise ConfigurationError(f"Invalid {label} '{duration}'. Expected e.g. '1h', '30m', '1h30m'",
                                     {'value': duration})
        parsed = timedelta(0)
        for amount, unit in _DURATION_PATTERN.findall(text):
            parsed += float(amount) * _DURATION_UNITS[unit]

    if parsed <= timedelta(0):
        raise ConfigurationError(f"{label} must be positive, got '{duration}'", {'value': str(duration)})
    return parsed


def expand_path_template(path_template: str, file_time: datetime,
                         date_format: str = FILE_DATE_FORMAT) -> str:
    """
    Substitute the file date into a path template.

    Args:
        path_template: Path containing the [DATE] placeholder
        file_time: Start time of the file
        date_format: strftime format for the date

    Returns:
        str: Concrete file path
    """
    return path_template.replace(DATE_PLACEHOLDER, file_time.strftime(date_format))


@dataclass
class TimeCursor:
    """
    Current position on a time axis split into equally long files.

    The cursor holds the timestamp of the next record to read. It is owned by
    a single producer and only that producer's pull advances it.

    Attributes:
        start: First timestamp of the window
        end: Exclusive end of the window
        record_interval: Time between successive stored records
        file_interval: Time spanned by one file
        current: Timestamp of the next record
    """

    start: datetime
    end: datetime
    record_interval: timedelta
    file_interval: timedelta
    current: Optional[datetime] = field(default=None)

    def __post_init__(self):
        if self.end < self.start:
            raise ConfigurationError(f"End time {self.end} is before start time {self.start}",
                                     {'start': str(self.start), 'end': str(self.end)})
        if self.record_interval <= timedelta(0) or self.file_interval <= timedelta(0):
            raise ConfigurationError("Record and file intervals must be positive")
        if self.file_interval < self.record_interval:
            raise ConfigurationError(
                f"File interval {self.file_interval} is shorter than record interval {self.record_interval}"
            )
        if self.file_interval % self.record_interval != timedelta(0):
            raise ConfigurationError(
                f"File interval {self.file_interval} is not a whole number of record intervals "
                f"({self.record_interval})",
                {'record_interval': str(self.record_interval), 'file_interval': str(self.file_interval)}
            )
        if self.current is None:
            self.current = self.start

    @property
    def exhausted(self) -> bool:
        return self.current >= self.end

    @property
    def records_per_file(self) -> int:
        return self.file_interval // self.record_interval

    def file_start(self, timestamp: datetime) -> datetime:
        """Start time of the file covering timestamp."""
        elapsed = timestamp - self.start
        return self.start + (elapsed // self.file_interval) * self.file_interval

    def record_index(self, timestamp: datetime) -> int:
        """Position of timestamp's record within its file."""
        return ((timestamp - self.start) % self.file_interval) // self.record_interval

    def advance(self) -> datetime:
        """
        Move one record forward.

        Returns:
            datetime: Timestamp of the record to read

        Raises:
            StopIteration: If the window is exhausted
        """
        if self.exhausted:
            raise StopIteration
        timestamp = self.current
        self.current = timestamp + self.record_interval
        return timestamp

    def remaining(self) -> int:
        """Number of records left in the window."""
        if self.exhausted:
            return 0
        return -(-(self.end - self.current) // self.record_interval)

    def reset(self) -> None:
        self.current = self.start
