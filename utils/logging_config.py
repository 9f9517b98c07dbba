"""Logging configuration for the LED layout calibrator."""

import copy
import logging
import logging.handlers
from pathlib import Path
from datetime import datetime
from typing import Optional
import sys


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output."""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        # Records are shared between handlers; color a copy only
        record = copy.copy(record)
        log_color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{log_color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: str = "INFO",
    console_output: bool = True,
    file_output: bool = True,
    verbose: bool = False
) -> None:
    """Set up application logging.

    Args:
        log_dir: Directory to store log files. Defaults to 'logs'.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        console_output: Enable console logging.
        file_output: Enable file logging.
        verbose: Enable verbose output (sets DEBUG level).
    """
    if log_dir is None:
        log_dir = Path("logs")
    log_dir = Path(log_dir)

    if verbose:
        log_level = "DEBUG"

    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_formatter = ColoredFormatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

    if file_output:
        log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_dir / f"ledcal_{timestamp}.log"

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

        # latest.log always holds the current run only
        latest_handler = logging.FileHandler(log_dir / "latest.log", mode='w')
        latest_handler.setLevel(level)
        latest_handler.setFormatter(file_formatter)
        root_logger.addHandler(latest_handler)

    logging.info("=" * 60)
    logging.info("LED Layout Calibrator Started")
    logging.info(f"Log Level: {log_level}")
    if file_output:
        logging.info(f"Log Directory: {log_dir}")
    logging.info("=" * 60)


class OperationLogger:
    """Logger for tracking long-running operations."""

    def __init__(self, operation_name: str, logger: Optional[logging.Logger] = None):
        """Initialize operation logger.

        Args:
            operation_name: Name of the operation.
            logger: Logger instance to use.
        """
        self.operation_name = operation_name
        self.logger = logger or logging.getLogger(__name__)
        self.start_time = None

    def __enter__(self):
        """Start operation timing."""
        self.start_time = datetime.now()
        self.logger.info(f"Starting {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Log operation completion or failure."""
        duration = datetime.now() - self.start_time

        if exc_type is None:
            self.logger.info(
                f"Completed {self.operation_name} in {duration.total_seconds():.2f} seconds"
            )
        else:
            self.logger.error(
                f"Failed {self.operation_name} after {duration.total_seconds():.2f} seconds: {exc_val}"
            )

    def progress(self, message: str, percentage: Optional[float] = None):
        """Log progress update.

        Args:
            message: Progress message.
            percentage: Optional completion percentage (0-100).
        """
        if percentage is not None:
            self.logger.info(f"{self.operation_name}: [{percentage:.1f}%] {message}")
        else:
            self.logger.info(f"{self.operation_name}: {message}")
