# src/citeflow/utils/logging_config.py
"""
File logging with per-run trace ids.

Usage:
    from citeflow.utils.logging_config import Logger, LogFiles

    Logger.info("Fetching 3 chunks", file=LogFiles.INDEXER)
    Logger.error("Provider returned 503", file=LogFiles.ERROR)

    # Default file (logs/citeflow.log)
    Logger.info("General message")

Environment variables:
    CITEFLOW_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
    CITEFLOW_LOG_DIR: Base directory for log files (default: logs/)
    CITEFLOW_LOG_MAX_BYTES: Max size per log file in bytes (default: 10MB)
    CITEFLOW_LOG_BACKUP_COUNT: Number of rotated files to keep (default: 5)
"""

from __future__ import annotations

import inspect
import os
import uuid
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import yaml

_trace_id_var: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_FILE = "citeflow.log"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_BACKUP_COUNT = 5
DEFAULT_FORMAT = "{timestamp} [{level}] [{trace_id}] {filename}:{lineno} - {message}"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_CONFIG_FILE = Path(__file__).parent / "log_config.yaml"

_DEFAULT_FILES = {
    "indexer": "indexer/indexer.log",
    "lookup": "lookup/lookup.log",
    "api": "api/api.log",
    "error": "errors/error.log",
}


class _LogFilesMeta(type):
    """Allows LogFiles.INDEXER style access to configured paths."""

    def __getattr__(cls, name: str) -> str:
        path = cls._find(name)
        if path is None:
            raise AttributeError(f"Log file '{name}' not found in config")
        return path


class LogFiles(metaclass=_LogFilesMeta):
    """
    Log file paths, read from log_config.yaml next to this module.

    New files are added under the ``files`` key of that YAML file and are
    then available as ``LogFiles.<NAME>``.
    """

    _loaded = False
    _files: dict = {}

    @classmethod
    def _load(cls) -> None:
        if cls._loaded:
            return

        cls._files = dict(_DEFAULT_FILES)
        try:
            if LOG_CONFIG_FILE.exists():
                with open(LOG_CONFIG_FILE, "r", encoding="utf-8") as f:
                    config = yaml.safe_load(f)
                if config and "files" in config:
                    cls._files.update(config["files"])
        except (OSError, yaml.YAMLError):
            # Fall back to the built-in paths
            pass

        cls._loaded = True

    @classmethod
    def _find(cls, name: str) -> Optional[str]:
        cls._load()
        if name in cls._files:
            return cls._files[name]
        return cls._files.get(name.lower())

    @classmethod
    def get(cls, name: str) -> str:
        """Path for *name*, or ``<name>/<name>.log`` if it is not configured."""
        return cls._find(name) or f"{name}/{name}.log"


LOG_LEVELS = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}

_initialized = False
_config: dict = {}
_file_handlers: dict[str, RotatingFileHandler] = {}


def _get_config() -> dict:
    return {
        "level": os.environ.get("CITEFLOW_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        "base_dir": os.environ.get("CITEFLOW_LOG_DIR", DEFAULT_LOG_DIR),
        "max_bytes": int(os.environ.get("CITEFLOW_LOG_MAX_BYTES", DEFAULT_MAX_BYTES)),
        "backup_count": int(os.environ.get("CITEFLOW_LOG_BACKUP_COUNT", DEFAULT_BACKUP_COUNT)),
    }


def _get_file_handler(file_path: str) -> RotatingFileHandler:
    handler = _file_handlers.get(file_path)
    if handler is None:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            filename=str(path),
            maxBytes=_config.get("max_bytes", DEFAULT_MAX_BYTES),
            backupCount=_config.get("backup_count", DEFAULT_BACKUP_COUNT),
            encoding="utf-8",
        )
        _file_handlers[file_path] = handler
    return handler


def _format_message(level: str, message: str, filename: str, lineno: int) -> str:
    return DEFAULT_FORMAT.format(
        timestamp=datetime.now().strftime(DEFAULT_DATE_FORMAT),
        level=level,
        trace_id=_trace_id_var.get() or "-",
        filename=filename,
        lineno=lineno,
        message=message,
    )


def _resolve_file_path(file: Optional[str]) -> str:
    base_dir = _config.get("base_dir", DEFAULT_LOG_DIR)
    return str(Path(base_dir) / (file or DEFAULT_LOG_FILE))


def _should_log(level: str) -> bool:
    current_level = _config.get("level", DEFAULT_LOG_LEVEL)
    return LOG_LEVELS.get(level, 0) >= LOG_LEVELS.get(current_level, 0)


def _write_log(level: str, message: str, file: Optional[str] = None) -> None:
    if not _should_log(level):
        return

    # Skip _write_log and the Logger method to reach the real caller
    frame = inspect.currentframe()
    caller_frame = frame.f_back.f_back if frame and frame.f_back else None
    if caller_frame:
        filename = os.path.basename(caller_frame.f_code.co_filename)
        lineno = caller_frame.f_lineno
    else:
        filename = "unknown"
        lineno = 0

    handler = _get_file_handler(_resolve_file_path(file))
    handler.stream.write(_format_message(level, message, filename, lineno) + "\n")
    handler.stream.flush()


class Logger:
    """
    Static logger writing to named files under the log directory.

    ``Logger.init()`` is optional; the first call initializes from the
    environment.
    """

    @staticmethod
    def init(
        level: Optional[str] = None,
        base_dir: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
    ) -> None:
        """
        Initialize the logging system.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            base_dir: Base directory for all log files
            max_bytes: Maximum size of each log file before rotation
            backup_count: Number of backup files to keep
        """
        global _initialized, _config

        if _initialized:
            return

        _config = _get_config()
        if level:
            _config["level"] = level.upper()
        if base_dir:
            _config["base_dir"] = base_dir
        if max_bytes:
            _config["max_bytes"] = max_bytes
        if backup_count:
            _config["backup_count"] = backup_count

        _initialized = True

    @staticmethod
    def _ensure_init() -> None:
        if not _initialized:
            Logger.init()

    @staticmethod
    def debug(message: str, file: Optional[str] = None) -> None:
        Logger._ensure_init()
        _write_log("DEBUG", message, file)

    @staticmethod
    def info(message: str, file: Optional[str] = None) -> None:
        Logger._ensure_init()
        _write_log("INFO", message, file)

    @staticmethod
    def warning(message: str, file: Optional[str] = None) -> None:
        Logger._ensure_init()
        _write_log("WARNING", message, file)

    @staticmethod
    def error(message: str, file: Optional[str] = None) -> None:
        Logger._ensure_init()
        _write_log("ERROR", message, file)

    @staticmethod
    def set_level(level: str) -> None:
        """Change the log level at runtime."""
        Logger._ensure_init()
        _config["level"] = level.upper()

    @staticmethod
    def close() -> None:
        """Close all file handlers."""
        for handler in _file_handlers.values():
            handler.close()
        _file_handlers.clear()

    @staticmethod
    def reset() -> None:
        """Close handlers and forget configuration; the next call re-reads the environment."""
        global _initialized, _config
        Logger.close()
        _config = {}
        _initialized = False


# ----------------------------------------------------------------------------
# Trace ids
# ----------------------------------------------------------------------------

def generate_trace_id() -> str:
    return f"run-{uuid.uuid4().hex[:12]}"


def set_trace_id(trace_id: Optional[str] = None) -> str:
    """Set (or generate) the trace id for the current context and return it."""
    tid = trace_id or generate_trace_id()
    _trace_id_var.set(tid)
    return tid


def get_trace_id() -> Optional[str]:
    return _trace_id_var.get()


def clear_trace_id() -> None:
    _trace_id_var.set(None)
