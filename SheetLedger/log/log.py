import logging
import sys
from typing import List, Optional

LOG_LEVEL = logging.DEBUG
LOG_FORMAT = '[%(asctime)s] <%(module)s> %(levelname)s:  %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

LEVELS = (
    logging.DEBUG,
    logging.INFO,
    logging.WARNING,
    logging.ERROR,
    logging.CRITICAL,
)


def set_logging_level(level):
    """
    Sets the logging level for the root logger.

    Args:
        level (int): The logging level to set. Should be one of the standard logging levels.
    """
    if not isinstance(level, int):
        raise ValueError("Logging level must be an integer.")
    if level not in LEVELS:
        raise ValueError('Invalid logging level. Use one of the standard logging levels, e.g., logging.DEBUG.')

    logging.getLogger().setLevel(level)


def level_from_name(name: str) -> int:
    """Convert a level name such as ``'info'`` to its logging constant."""
    level = logging.getLevelName(str(name).upper())
    if level not in LEVELS:
        raise ValueError(f'Invalid logging level name: "{name}".')
    return level


def setup_logging(enable_stream_handler: bool = True, log_level: int = LOG_LEVEL):
    """
    Configures the root logger with a stdout stream handler and an in-memory tank.

    Args:
        enable_stream_handler (bool): Whether to log to stdout.
        log_level (int): The level applied to the root logger and its handlers.
    """
    set_logging_level(log_level)
    root_logger = logging.getLogger()

    # Clear all handlers to avoid formatting conflicts
    root_logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    if enable_stream_handler:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        stream_handler.setLevel(log_level)
        root_logger.addHandler(stream_handler)

    tank_handler = TankHandler()
    tank_handler.setFormatter(formatter)
    tank_handler.setLevel(log_level)
    root_logger.addHandler(tank_handler)

    # The Google client libraries are chatty at debug level
    logging.getLogger('googleapiclient.discovery_cache').setLevel(logging.ERROR)


def get_tank() -> Optional['TankHandler']:
    """Return the tank handler installed on the root logger, if any."""
    return next(
        (h for h in logging.getLogger().handlers if isinstance(h, TankHandler)), None
    )


class TankHandler(logging.Handler):
    """
    Custom logging handler that stores formatted log messages in an in-memory tank.

    This handler collects log records which can later be browsed and filtered based on
    the logging level. The tank is bounded so a long-running server does not grow
    without limit.

    Attributes:
        tank (list[tuple[int, str]]): A list of tuples each containing a log level and the
            corresponding formatted log message.
        capacity (int): Maximum number of records kept.
    """

    def __init__(self, capacity: int = 1000):
        """
        Initializes the TankHandler with an empty tank.
        """
        super().__init__()
        self.tank = []
        self.capacity = capacity

    def emit(self, record):
        """
        Converts a log record to a formatted message and stores it in the tank.

        Args:
            record (logging.LogRecord): The log record to be processed.
        """
        try:
            message = self.format(record)
            self.tank.append((record.levelno, message))
            if len(self.tank) > self.capacity:
                del self.tank[:len(self.tank) - self.capacity]
        except Exception:
            self.handleError(record)

    def get_logs(self, level=logging.NOTSET, limit: Optional[int] = None) -> List[str]:
        """
        Returns the list of stored log messages filtered by a minimum logging level.

        Args:
            level (int, optional): The minimum logging level. Defaults to logging.NOTSET.
            limit (int, optional): Return only the most recent ``limit`` messages.

        Returns:
            list[str]: A list of formatted log messages with a level >= the specified level.
        """
        messages = [msg for lvl, msg in self.tank if lvl >= level]
        if limit is not None:
            return messages[-limit:] if limit > 0 else []
        return messages

    def clear_logs(self):
        """
        Clears all the stored log messages from the tank.
        """
        self.tank.clear()
