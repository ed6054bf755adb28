"""
Logging for the function calling layer.

The components of the package do not write to the logging module
directly. They take a `LoggerBase` object as argument, defaulting to a
console logger for the module, so that callers can redirect, collect
or escalate the messages about the tool calls that were recovered
from, or discarded in, a model completion.

Usage:
    ```python
    from lmfc.utils.logging import get_logger, LoglistLogger

    # module-level console logger
    logger = get_logger(__name__)

    # collect the messages instead, e.g. to inspect them in tests
    log_list = LoglistLogger()
    model = PromptBasedFunctionCallingModel(inner, logger=log_list)
    ...
    print(log_list.get_logs(level=1))  # warnings and errors only
    ```
"""

import logging
import sys
from pathlib import Path
from abc import ABC, abstractmethod

LOG_FORMAT = '%(levelname)s - %(message)s'
FILE_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class LoggerBase(ABC):
    """
    Abstract interface for logging functionality.
    """

    @abstractmethod
    def set_level(self, level: int) -> None:
        """Set the logging level for the logger."""
        pass

    @abstractmethod
    def get_level(self) -> int:
        """Get the current logging level"""
        pass

    @abstractmethod
    def info(self, msg: str) -> None:
        """Log an informational message."""
        pass

    @abstractmethod
    def error(self, msg: str) -> None:
        """Log an error message."""
        pass

    @abstractmethod
    def warning(self, msg: str) -> None:
        """Log a warning message."""
        pass

    @abstractmethod
    def critical(self, msg: str) -> None:
        """Log a critical message."""
        pass


class _DelegateLogger(LoggerBase):
    """Common part of the loggers wrapping a logging.Logger."""

    logger: logging.Logger

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)

    def get_level(self) -> int:
        return self.logger.level

    def info(self, msg: str) -> None:
        self.logger.info(msg)

    def error(self, msg: str) -> None:
        self.logger.error(msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(msg)

    def critical(self, msg: str) -> None:
        self.logger.critical(msg, stack_info=True)


class ConsoleLogger(_DelegateLogger):
    """
    A console logger that uses logging.Logger as a delegate. Messages
    are written to stdout.
    """

    def __init__(self, name: str | None = None) -> None:
        """
        Initialize the ConsoleLogger with a specific logger name,
        typically __name__ to use the module name. Without a name,
        the root logger is used.
        """
        self.logger = logging.getLogger(name or None)
        self.logger.setLevel(logging.INFO)

        # Ensure we have a console handler if none exists
        if not self.logger.hasHandlers():
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            self.logger.addHandler(handler)


class FileLogger(_DelegateLogger):
    """
    A file logger that uses logging.Logger as a delegate. Messages
    are written to the given file only.
    """

    def __init__(
        self, name: str = "", log_file: str | Path = "lmfc.log"
    ) -> None:
        """
        Args:
            name: The name of the logger, typically __name__ to use
                the module name
            log_file: Path to the log file where messages will be
                written
        """
        self.logger = logging.getLogger(f"{name}_file")
        self.logger.setLevel(logging.INFO)

        # Clear any existing handlers to avoid duplicates
        self.logger.handlers.clear()

        handler = logging.FileHandler(log_file)
        handler.setFormatter(
            logging.Formatter(FILE_LOG_FORMAT, DATE_FORMAT)
        )
        self.logger.addHandler(handler)

        # Prevent propagation to avoid duplicate logs
        self.logger.propagate = False


class LoglistLogger(LoggerBase):
    """
    Maintains a list of logged messages that can be inspected by the
    object creator.
    """

    def __init__(self) -> None:
        self.logs: list[dict[str, str]] = []

    def set_level(self, level: int) -> None:
        pass

    def get_level(self) -> int:
        return 0

    def info(self, msg: str) -> None:
        self.logs.append({'info': msg})

    def error(self, msg: str) -> None:
        self.logs.append({'error': msg})

    def warning(self, msg: str) -> None:
        self.logs.append({'warning': msg})

    def critical(self, msg: str) -> None:
        self.logs.append({'critical': msg})

    def get_logs(self, level: int = 0) -> list[str]:
        """
        Returns a list of strings with the log messages.

        Args:
           level: a filter on the logs. Possible values:
                0 or less: returns all messages
                1: omit info
                2: omit info and warnings
        """
        logs: list[str] = []
        for entry in self.logs:
            match entry:
                case {'info': msg}:
                    if level < 1:
                        logs.append("INFO - " + msg)
                case {'warning': msg}:
                    if level < 2:
                        logs.append("WARNING - " + msg)
                case {'error': msg}:
                    logs.append("ERROR - " + msg)
                case {'critical': msg}:
                    logs.append("CRITICAL - " + msg)
                case _:
                    logs.append(str(entry))
        return logs

    def count_logs(self, level: int = 0) -> int:
        """The number of recorded logs. Zero means there
        were no recorded logs."""
        return len(self.get_logs(level))

    def clear_logs(self) -> None:
        self.logs.clear()


class ExceptionConsoleLogger(ConsoleLogger):
    """
    A console logger that raises RuntimeError on error and critical
    calls, after logging the message. With an Agent, this turns the
    failure of a tool into an exception instead of an error message
    for the model.
    """

    def __init__(self, name: str = "") -> None:
        super().__init__(f"{name}_exception")

    def error(self, msg: str) -> None:
        self.logger.error(msg)
        raise RuntimeError(f"Error: {msg}")

    def critical(self, msg: str) -> None:
        self.logger.critical(msg)
        raise RuntimeError(f"Critical error: {msg}")


def get_logger(name: str) -> LoggerBase:
    """
    Get a console logger with the specified name.

    Args:
        name: The name of the logger, typically __name__ to use the
            module name
    """
    return ConsoleLogger(name)

