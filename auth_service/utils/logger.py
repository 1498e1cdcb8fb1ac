import logging
import sys
import time
from functools import wraps
from typing import Optional
from pathlib import Path

ROOT_LOGGER_NAME = "auth_service"


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
) -> logging.Logger:
    """
    Set up a logger with console and optional file handlers

    Args:
        name: Logger name
        level: Logging level
        log_file: Optional file path for logging
        log_format: Log message format

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a logger instance under the service's logger hierarchy

    Args:
        name: Child logger name (optional)

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return logging.getLogger(ROOT_LOGGER_NAME)


def log_email_operation(operation: str):
    """
    Decorator to log email operations along with their recipient

    The recipient is the 'email' keyword or the first positional argument.

    Args:
        operation: Description of the email operation
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            log = get_logger("email")
            recipient = kwargs.get("email", args[0] if args else "unknown")
            log.info(f"Starting email operation '{operation}' for {recipient}")

            try:
                result = func(*args, **kwargs)
                log.info(f"Email operation '{operation}' for {recipient} completed successfully")
                return result
            except Exception as e:
                log.error(f"Email operation '{operation}' for {recipient} failed: {str(e)}")
                raise
        return wrapper
    return decorator


def log_oauth_operation(provider: str):
    """
    Decorator to log calls to an OAuth provider with their duration

    Args:
        provider: OAuth provider name
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            log = get_logger("oauth")
            log.info(f"Starting {provider} OAuth operation: {func.__name__}")
            started = time.perf_counter()

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed_ms = (time.perf_counter() - started) * 1000
                log.error(f"{provider} OAuth operation '{func.__name__}' failed after {elapsed_ms:.0f}ms: {str(e)}")
                raise
            elapsed_ms = (time.perf_counter() - started) * 1000
            log.info(f"{provider} OAuth operation '{func.__name__}' completed in {elapsed_ms:.0f}ms")
            return result
        return wrapper
    return decorator
