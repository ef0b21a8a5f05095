"""
Error Handling and Logging Infrastructure for WRF-CMAQ Preprocessing

This module provides standardized logging, the preprocessor exception
hierarchy, and the progress-message sinks that grid producers report to
while they step through dated output files.
"""

import logging
import queue
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional


def setup_preprocessor_logging(log_level: str = "INFO",
                               log_file: Optional[str] = None,
                               console_output: bool = True) -> logging.Logger:
    """
    Setup standardized logging for WRF-CMAQ preprocessing.

    Args:
        log_level: Logging level ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
        log_file: Optional path to log file
        console_output: Whether to output logs to console

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger('wrfcmaq_preprocessor')
    logger.setLevel(getattr(logging, log_level.upper()))

    # Clear any existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, log_level.upper()))
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)  # File logs capture everything
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


# =============================================================================
# EXCEPTIONS
# =============================================================================

class PreprocessorError(Exception):
    """Base exception class for WRF-CMAQ preprocessing errors"""

    def __init__(self, message: str, context: Optional[Dict] = None):
        """
        Initialize preprocessor error.

        Args:
            message: Error message
            context: Optional context dictionary with additional information
        """
        super().__init__(message)
        self.context = context or {}
        self.timestamp = datetime.now()

    def get_full_error_info(self) -> Dict[str, Any]:
        """Get complete error information including context"""
        return {
            'error_type': self.__class__.__name__,
            'message': str(self),
            'timestamp': self.timestamp.isoformat(),
            'context': self.context
        }


class ConfigurationError(PreprocessorError):
    """Malformed date, interval, template or species group configuration"""
    pass


class GridFileError(PreprocessorError):
    """A dated output file is missing, corrupt or unreadable"""
    pass


class MissingVariableError(PreprocessorError):
    """A variable is absent from an otherwise readable file"""
    pass


class ShapeMismatchError(PreprocessorError):
    """Grids combined elementwise do not share a shape"""
    pass


class LookupRangeError(PreprocessorError):
    """A categorical code falls outside its lookup table"""
    pass


class ProducerHaltedError(PreprocessorError):
    """A producer was pulled again after a failed pull"""
    pass


@contextmanager
def error_context(operation_name: str, logger: Optional[logging.Logger] = None, **context_info):
    """
    Context manager for wrapping operations with error handling.

    Preprocessor errors get the operation context merged into their own;
    any other exception is re-raised as a PreprocessorError.

    Args:
        operation_name: Name of operation being performed
        logger: Optional logger for debug and error messages
        **context_info: Additional context information

    Example:
        with error_context("reading PH", logger, file="wrfout_2005-01-01"):
            grid = reader.read_record(handle, "PH", 0)
    """
    start_time = datetime.now()

    if logger:
        logger.debug(f"Starting operation: {operation_name}")

    try:
        yield
        if logger:
            logger.debug(f"Completed operation: {operation_name} "
                         f"(duration: {datetime.now() - start_time})")

    except Exception as e:
        error_context_dict = {
            'operation': operation_name,
            'duration': str(datetime.now() - start_time),
            **context_info
        }

        if logger:
            logger.error(f"Processing error ({type(e).__name__}): {e}")

        if isinstance(e, PreprocessorError):
            e.context.update(error_context_dict)
            raise
        raise PreprocessorError(str(e), error_context_dict) from e


# =============================================================================
# PROGRESS SINKS
# =============================================================================

class ProgressSink:
    """
    Receiver for human-readable progress messages.

    The default implementation discards everything, so producers can always
    report progress without checking whether anybody is listening.
    """

    def send(self, message: str) -> None:
        pass


class LoggingProgressSink(ProgressSink):
    """Forward progress messages to a logger."""

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.logger = logger or logging.getLogger('wrfcmaq_preprocessor.progress')
        self.level = level

    def send(self, message: str) -> None:
        self.logger.log(self.level, message)


class QueueProgressSink(ProgressSink):
    """
    Put progress messages on a queue without ever blocking.

    Messages that do not fit in a bounded queue are dropped and counted.
    """

    def __init__(self, message_queue: Optional[queue.Queue] = None):
        self.queue = message_queue if message_queue is not None else queue.Queue()
        self.dropped = 0

    def send(self, message: str) -> None:
        try:
            self.queue.put_nowait(message)
        except queue.Full:
            self.dropped += 1


class CallbackProgressSink(ProgressSink):
    """Call a user function with each progress message."""

    def __init__(self, callback):
        self.callback = callback

    def send(self, message: str) -> None:
        self.callback(message)


def notify(sink: Optional[ProgressSink], message: str) -> None:
    """
    Deliver a progress message, best effort.

    A missing sink means silent operation. Failures inside the sink are
    logged and never reach the caller.
    """
    if sink is None:
        return
    try:
        sink.send(message)
    except Exception as e:
        logging.getLogger(__name__).warning(f"Progress sink failed on '{message}': {e}")
