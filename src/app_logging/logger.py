import logging
import sys
import json
import os
import gzip
import shutil
from datetime import datetime
from decimal import Decimal
from logging.handlers import TimedRotatingFileHandler
from typing import Optional
from app_config import LoggingConfig, get_config
from .context import get_current_copy

_STANDARD_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName', 'taskName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'message', 'request_id', 'account_id', 'source_wallet'
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
            # Compression failures must not break the rollover
            print(f"Error during log compression: {e}", file=sys.stderr)


class StructuredFormatter(logging.Formatter):
    """Formatter for structured logging with copy operation context"""

    def __init__(self, output_format: str = 'text'):
        super().__init__()
        self.output_format = output_format

    def format(self, record):
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage()
        }

        for key in ('request_id', 'account_id', 'source_wallet'):
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS:
                continue
            if isinstance(value, datetime):
                log_data[key] = value.isoformat()
            elif isinstance(value, Decimal):
                log_data[key] = str(value)
            else:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        if self.output_format == 'json':
            return json.dumps(log_data, default=str)

        base_msg = f"{log_data['timestamp']} - {log_data['logger']} - {log_data['level']} - {log_data['message']}"
        if 'request_id' in log_data:
            base_msg += f" [request_id={log_data['request_id']}]"
        if 'account_id' in log_data:
            base_msg += f" [account_id={log_data['account_id']}]"
        if 'exception' in log_data:
            base_msg += f"\n{log_data['exception']}"
        return base_msg


def configure_root_logger(logging_config: Optional[LoggingConfig] = None):
    """Configure the root logger to use structured formatting for all logs"""
    if logging_config is None:
        logging_config = get_config().logging

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

    # apscheduler logs every job run at INFO
    logging.getLogger('apscheduler').setLevel(logging.WARNING)

    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)


def _extract_copy_properties() -> dict:
    """Extract the current copy operation's identifiers for logging"""
    context = get_current_copy()
    if context is None:
        return {}

    properties = {
        'request_id': context.request_id,
        'account_id': context.account_id,
    }
    if context.source_wallet:
        properties['source_wallet'] = context.source_wallet
    return properties


class ContextLoggerAdapter(logging.LoggerAdapter):
    """Attaches the current copy operation context to every record"""

    def process(self, msg, kwargs):
        extra = _extract_copy_properties()
        if kwargs.get('extra'):
            extra.update(kwargs['extra'])
        kwargs['extra'] = extra
        return msg, kwargs


class AppLogger:
    """Logger instance with automatic copy context extraction"""

    def __init__(self, name: str):
        self.logger = ContextLoggerAdapter(logging.getLogger(name), {})

    def log_debug(self, message: str):
        """Log debug message with copy context from ContextVar"""
        self.logger.debug(message)

    def log_info(self, message: str):
        """Log info message with copy context from ContextVar"""
        self.logger.info(message)

    def log_warning(self, message: str):
        """Log warning message with copy context from ContextVar"""
        self.logger.warning(message)

    def log_error(self, message: str):
        """Log error message with copy context from ContextVar"""
        self.logger.error(message)


def get_logger(name: str) -> logging.LoggerAdapter:
    """Logger adapter for components that take an optional ``logging.Logger``"""
    return ContextLoggerAdapter(logging.getLogger(name), {})
