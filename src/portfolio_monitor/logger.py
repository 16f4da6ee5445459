import logging
import sys
import json
import os
import gzip
import shutil
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from typing import Optional

from portfolio_monitor.config import LoggingConfig
from portfolio_monitor.context import get_current_task

_STANDARD_RECORD_FIELDS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName', 'taskName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'message', 'task', 'cycle_id',
}


class CompressingTimedRotatingFileHandler(TimedRotatingFileHandler):
    """TimedRotatingFileHandler that compresses rotated files"""

    def doRollover(self):
        """Override to add compression after rotation"""
        super().doRollover()

        dir_name, base_name = os.path.split(self.baseFilename)

        try:
            for file_name in os.listdir(dir_name):
                if file_name.startswith(base_name) and not file_name.endswith('.gz') and file_name != base_name:
                    full_path = os.path.join(dir_name, file_name)
                    with open(full_path, 'rb') as f_in:
                        with gzip.open(f'{full_path}.gz', 'wb') as f_out:
                            shutil.copyfileobj(f_in, f_out)
                    os.remove(full_path)
        except OSError as e:
            # Log compression errors but don't fail the rollover
            print(f"Error during log compression: {e}", file=sys.stderr)


class StructuredFormatter(logging.Formatter):
    """Formatter for structured logging with task/cycle support"""

    def __init__(self, output_format: str = 'text'):
        super().__init__()
        self.output_format = output_format

    def format(self, record):
        log_data = {
            'timestamp': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage()
        }

        if hasattr(record, 'task'):
            log_data['task'] = record.task
        if hasattr(record, 'cycle_id'):
            log_data['cycle_id'] = record.cycle_id

        # Add any other extra fields
        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_FIELDS:
                if isinstance(value, datetime):
                    log_data[key] = value.isoformat()
                else:
                    log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        if self.output_format == 'json':
            return json.dumps(log_data, default=str)

        base_msg = f"{log_data['timestamp']} - {log_data['logger']} - {log_data['level']} - {log_data['message']}"
        if 'task' in log_data:
            base_msg += f" [task={log_data['task']}]"
        if 'cycle_id' in log_data:
            base_msg += f" [cycle_id={log_data['cycle_id']}]"
        if 'exception' in log_data:
            base_msg += f"\n{log_data['exception']}"
        return base_msg


def configure_root_logger(logging_config: Optional[LoggingConfig] = None):
    """Configure the root logger to use structured formatting for all logs"""
    logging_config = logging_config or LoggingConfig()
    root_logger = logging.getLogger()

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, logging_config.level))

    formatter = StructuredFormatter(logging_config.format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if logging_config.file_path:
        log_dir = os.path.dirname(logging_config.file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = CompressingTimedRotatingFileHandler(
            filename=logging_config.file_path,
            when='midnight',
            interval=1,
            backupCount=logging_config.backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    _configure_third_party_loggers()


def _configure_third_party_loggers():
    """Configure specific third-party library loggers with appropriate levels"""
    # aiohttp: Set to WARNING to reduce HTTP request/response noise
    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('aiohttp.access').setLevel(logging.WARNING)

    # Redis: Set to INFO to capture connection issues but reduce debug noise
    logging.getLogger('redis').setLevel(logging.INFO)

    # APScheduler logs every job submission at INFO
    logging.getLogger('apscheduler').setLevel(logging.WARNING)


def _extract_task_properties():
    """Extract the current task cycle for logging"""
    context = get_current_task()
    if context is None:
        return {}
    return {'task': context.task, 'cycle_id': context.cycle_id}


class AppLogger:
    """Logger with automatic task cycle context extraction"""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log_debug(self, message: str):
        self.logger.debug(message, extra=_extract_task_properties())

    def log_info(self, message: str):
        self.logger.info(message, extra=_extract_task_properties())

    def log_warning(self, message: str):
        self.logger.warning(message, extra=_extract_task_properties())

    def log_error(self, message: str, exc_info: bool = False):
        self.logger.error(message, extra=_extract_task_properties(), exc_info=exc_info)
