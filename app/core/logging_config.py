"""
Logging configuration for the Product Catalog & Quotation API.
Console output plus rotating application, error and performance logs.
"""

import logging
import logging.handlers
import sys
import os
from pathlib import Path
from typing import Optional
import psutil

from app.config import settings


class PerformanceLogger:
    """Records process memory and CPU snapshots around heavy operations (imports, exports)."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.process = psutil.Process()

    def log_memory_usage(self, context: str = ""):
        memory_mb = self.process.memory_info().rss / 1024 / 1024
        memory_percent = self.process.memory_percent()

        self.logger.info(
            f"MEMORY - {context}: {memory_mb:.2f} MB ({memory_percent:.2f}%)",
            extra={
                "metric_type": "memory",
                "context": context,
                "memory_mb": memory_mb,
                "memory_percent": memory_percent
            }
        )

    def log_cpu_usage(self, context: str = "", interval: float = 0.1):
        cpu_percent = self.process.cpu_percent(interval=interval)

        self.logger.info(
            f"CPU - {context}: {cpu_percent:.2f}%",
            extra={
                "metric_type": "cpu",
                "context": context,
                "cpu_percent": cpu_percent
            }
        )

    def log_performance_snapshot(self, context: str = ""):
        """Log both memory and CPU usage."""
        self.log_memory_usage(context)
        self.log_cpu_usage(context)


class ContextFilter(logging.Filter):
    """Attach the PID and any metric values to each record."""

    def filter(self, record):
        record.pid = os.getpid()
        record.memory_info = f"[MEM: {record.memory_mb:.2f}MB]" if hasattr(record, 'memory_mb') else ""
        record.cpu_info = f"[CPU: {record.cpu_percent:.2f}%]" if hasattr(record, 'cpu_percent') else ""
        return True


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
        'RESET': '\033[0m'
    }

    def format(self, record):
        if sys.stdout.isatty():
            levelname = record.levelname
            record.levelname = f"{self.COLORS.get(levelname, '')}{levelname}{self.COLORS['RESET']}"
        return super().format(record)


def _rotating_handler(path: str, level: int, fmt: str, backup_count: int = 5) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=backup_count
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt='%Y-%m-%d %H:%M:%S'))
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    enable_file_logging: bool = True
) -> None:
    """
    Setup logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files (default: settings.LOG_DIR)
        enable_file_logging: Whether to write app.log, error.log and performance.log
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(ColoredFormatter(
        '%(asctime)s - %(name)s - [%(levelname)s] - %(message)s %(memory_info)s%(cpu_info)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    console_handler.addFilter(ContextFilter())
    root_logger.addHandler(console_handler)

    if enable_file_logging:
        log_dir = log_dir or settings.LOG_DIR
        Path(log_dir).mkdir(parents=True, exist_ok=True)

        app_handler = _rotating_handler(
            os.path.join(log_dir, 'app.log'),
            numeric_level,
            '%(asctime)s - %(name)s - [%(levelname)s] - [PID:%(pid)s] - %(message)s'
        )
        app_handler.addFilter(ContextFilter())
        root_logger.addHandler(app_handler)

        error_handler = _rotating_handler(
            os.path.join(log_dir, 'error.log'),
            logging.ERROR,
            '%(asctime)s - %(name)s - [%(levelname)s] - [PID:%(pid)s] - %(message)s\n'
            'Location: %(pathname)s:%(lineno)d\n'
            'Function: %(funcName)s\n'
        )
        error_handler.addFilter(ContextFilter())
        root_logger.addHandler(error_handler)

        perf_handler = _rotating_handler(
            os.path.join(log_dir, 'performance.log'),
            logging.INFO,
            '%(asctime)s - [PERF] - %(message)s',
            backup_count=3
        )
        # Only metric records
        perf_handler.addFilter(lambda record: hasattr(record, 'metric_type'))
        root_logger.addHandler(perf_handler)

    logging.getLogger("multipart").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("openpyxl").setLevel(logging.WARNING)

    logging.info(f"Logging initialized - Level: {log_level}, File Logging: {enable_file_logging}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with a `perf` attribute for performance snapshots.

    Args:
        name: Logger name (usually __name__)
    """
    logger = logging.getLogger(name)
    if not hasattr(logger, 'perf'):
        logger.perf = PerformanceLogger(logger)
    return logger


def log_operation_start(logger: logging.Logger, operation: str, **kwargs):
    """Log the start of an operation with context."""
    logger.info(
        f"Starting operation: {operation}",
        extra={"operation": operation, "phase": "start", **kwargs}
    )


def log_operation_end(logger: logging.Logger, operation: str, success: bool = True, **kwargs):
    """Log the end of an operation with context."""
    status = "completed" if success else "failed"
    level = logging.INFO if success else logging.ERROR
    logger.log(
        level,
        f"Operation {status}: {operation}",
        extra={"operation": operation, "phase": "end", "success": success, **kwargs}
    )


def log_api_request(logger: logging.Logger, method: str, path: str, status_code: int, duration_ms: float):
    """Log API request."""
    logger.info(
        f"API {method} {path} - {status_code} - {duration_ms:.2f}ms",
        extra={
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms
        }
    )
