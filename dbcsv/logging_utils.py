# dbcsv/logging_utils.py
"""
Logging setup for export scripts.

Export jobs usually run unattended, so each run gets its own timestamped log
file like ``nightly_export_YYYYMMDD_HHMMSS.log`` and, when errors occur, a
companion ``_error.log``.
"""

import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Tuple

from .config import get_setting

logger = logging.getLogger(__name__)

_error_handler: Optional['ErrorCountHandler'] = None
_main_log_path: Optional[str] = None
_error_log_path: Optional[str] = None


class ErrorCountHandler(logging.Handler):
    """Counts ERROR and CRITICAL records and opens the error log on the first one."""

    def __init__(self, error_log_path: Optional[str] = None, formatter: Optional[logging.Formatter] = None):
        super().__init__(level=logging.ERROR)
        self.error_count = 0
        self.error_log_path = error_log_path
        self.formatter = formatter
        self._error_file_handler = None

    def emit(self, record):
        if record.levelno < logging.ERROR:
            return
        self.error_count += 1
        if not self.error_log_path:
            return
        if self._error_file_handler is None:
            try:
                handler = logging.FileHandler(self.error_log_path, encoding='utf-8')
            except OSError as e:
                self.error_log_path = None
                logger.warning(f"Failed to create error log file: {e}")
                return
            if self.formatter:
                handler.setFormatter(self.formatter)
            self._error_file_handler = handler
        self._error_file_handler.emit(record)

    def close(self):
        if self._error_file_handler is not None:
            self._error_file_handler.close()
        super().close()


def _log_file_paths(script_name: str, log_dir: Path, filename_format: str,
                    split_errors: bool) -> Tuple[Path, Optional[Path]]:
    stem = script_name
    if filename_format:
        stem = f"{script_name}_{datetime.now().strftime(filename_format)}"
    error_file = log_dir / f"{stem}_error.log" if split_errors else None
    return log_dir / f"{stem}.log", error_file


def setup_logging(
    script_name: Optional[str] = None,
    log_dir: Optional[str] = None,
    level: Optional[str] = None,
    split_errors: Optional[bool] = None,
    console: Optional[bool] = None
) -> Tuple[str, Optional[str]]:
    """
    Configure the root logger for an export script.

    Args:
        script_name: Base name for log files (defaults to script filename without extension)
        log_dir: Directory for log files (defaults to 'logging.directory' setting)
        level: Logging level string - DEBUG, INFO, WARNING, ERROR
        split_errors: Write ERROR records to a separate file as well
        console: Also log to stdout

    Returns:
        Tuple of (log_file_path, error_log_path or None)

    Example
    -------
    ::

        import dbcsv

        dbcsv.setup_logging('nightly_export')
        dbcsv.to_csv(cursor, 'orders.csv')
        if dbcsv.errors_logged():
            notify_operators()
    """
    global _error_handler, _main_log_path, _error_log_path

    if script_name is None:
        script_name = Path(sys.argv[0]).stem

    logging_config = get_setting('logging', {}) or {}
    log_dir = log_dir or logging_config.get('directory', './logs')
    level = (level or logging_config.get('level', 'INFO')).upper()
    if split_errors is None:
        split_errors = logging_config.get('split_errors', True)
    if console is None:
        console = logging_config.get('console', True)

    formatter = logging.Formatter(
        logging_config.get('format', '%(asctime)s [%(levelname)s] %(name)s: %(message)s'),
        datefmt=logging_config.get('timestamp_format', '%Y-%m-%d %H:%M:%S')
    )

    log_dir_path = Path(log_dir)
    log_dir_path.mkdir(parents=True, exist_ok=True)
    log_file, error_file = _log_file_paths(
        script_name, log_dir_path, logging_config.get('filename_format', '%Y%m%d_%H%M%S'), split_errors
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))
    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    _error_handler = ErrorCountHandler(str(error_file) if error_file else None, formatter)
    root_logger.addHandler(_error_handler)

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, level))
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    _main_log_path = str(log_file)
    _error_log_path = str(error_file) if error_file else None

    logging.info(f"Logging initialized: {log_file}")
    return _main_log_path, _error_log_path


def errors_logged() -> Optional[str]:
    """
    Return the log file holding this run's errors, or None if nothing was logged
    at ERROR or above.

    The separate error log is returned when split_errors is on, otherwise the
    main log.
    """
    if _error_handler is None:
        logger.warning("errors_logged() called but setup_logging() was not called")
        return None
    if _error_handler.error_count == 0:
        return None
    return _error_log_path or _main_log_path


def cleanup_old_logs(
    log_dir: Optional[str] = None,
    retention_days: Optional[int] = None,
    pattern: str = "*.log",
    dry_run: bool = False
) -> List[str]:
    """
    Remove log files older than the retention period.

    Args:
        log_dir: Directory to clean (defaults to 'logging.directory' setting)
        retention_days: Keep logs newer than this many days (defaults to 'logging.retention_days')
        pattern: Glob pattern for log files
        dry_run: Only report what would be deleted

    Returns:
        List of deleted (or would-be-deleted if dry_run) file paths
    """
    logging_config = get_setting('logging', {}) or {}
    log_dir_path = Path(log_dir or logging_config.get('directory', './logs'))
    retention_days = retention_days or logging_config.get('retention_days', 30)

    if not log_dir_path.exists():
        logger.warning(f"Log directory does not exist: {log_dir_path}")
        return []

    cutoff = datetime.now() - timedelta(days=retention_days)
    deleted = []
    for log_file in sorted(log_dir_path.glob(pattern)):
        if not log_file.is_file():
            continue
        if datetime.fromtimestamp(log_file.stat().st_mtime) >= cutoff:
            continue
        if dry_run:
            logger.info(f"Would delete: {log_file}")
        else:
            try:
                log_file.unlink()
            except OSError as e:
                logger.warning(f"Failed to delete {log_file}: {e}")
                continue
            logger.info(f"Deleted old log: {log_file}")
        deleted.append(str(log_file))

    if deleted and not dry_run:
        logger.info(f"Cleaned up {len(deleted)} old log files")
    return deleted
