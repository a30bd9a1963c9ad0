# utils/logger.py
import os
import logging
from typing import Optional, Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(
    logger_name: str,
    log_file: Optional[str] = None,
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[str] = "logs"
) -> logging.Logger:
    """
    Set up and return a warehouse logger with file and console handlers.

    Args:
        logger_name: Name of the logger (e.g. "ETL_Pipeline")
        log_file: Optional specific log filename (default: {logger_name}.log)
        level: Logging level, as an int or a name such as "DEBUG" (default: INFO)
        log_dir: Directory for log files; None disables the file handler

    Returns:
        Configured logger instance
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    # Clear existing handlers to avoid duplicate lines on repeated runs
    if logger.handlers:
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        if log_file is None:
            log_file = f"{logger_name.lower().replace(' ', '_')}.log"
        log_path = os.path.join(log_dir, log_file)

        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        logger.debug(f"Log file is being saved to: {os.path.abspath(log_path)}")

    return logger


def configure_layer_loggers(
    names: list,
    log_file: Optional[str] = None,
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[str] = "logs"
) -> None:
    """
    Point every layer logger at the same handlers so one run produces one log file.
    """
    for name in names:
        setup_logger(name, log_file=log_file, level=level, log_dir=log_dir)
