"""
Logging Setup for GIF Budget
Initializes logging configuration from YAML file and routes per-task log lines
"""

import os
import logging
import logging.config
from typing import Callable, Optional

import yaml
from colorama import init, Fore, Style

# Initialize colorama for Windows compatibility
init(autoreset=True)

ROOT_LOGGER = 'gifbudget'


def get_package_base_dir() -> str:
    return os.path.abspath(os.path.dirname(__file__))


class ColoredFormatter(logging.Formatter):
    """Custom formatter to add colors to console output"""

    COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.MAGENTA + Style.BRIGHT,
    }

    def format(self, record):
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{Style.RESET_ALL}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class TaskLogAdapter(logging.LoggerAdapter):
    """Tags every record with the task it belongs to and prefixes the message."""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get('extra') or {})
        extra['task_id'] = self.extra['task_id']
        kwargs['extra'] = extra
        return f"[{self.extra['task_id']}] {msg}", kwargs


class TaskLogHandler(logging.Handler):
    """Forwards records that carry a ``task_id`` to a callback.

    Records without a task id are forwarded with ``None`` so the consumer can
    show them in a global log.
    """

    def __init__(self, callback: Callable[[Optional[str], str], None], level=logging.INFO):
        super().__init__(level)
        self.callback = callback
        self.setFormatter(logging.Formatter('%(message)s'))

    def emit(self, record):
        try:
            self.callback(getattr(record, 'task_id', None), self.format(record))
        except Exception:
            self.handleError(record)


def task_logger(task_id: str, name: str = ROOT_LOGGER) -> TaskLogAdapter:
    return TaskLogAdapter(logging.getLogger(name), {'task_id': task_id})


DEFAULT_LOGGING_CONFIG = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'detailed': {
            'format': '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        },
        'console': {
            'format': '%(asctime)s | %(levelname)-8s | %(message)s',
            'datefmt': '%H:%M:%S'
        }
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'level': 'INFO',
            'formatter': 'console',
            'stream': 'ext://sys.stdout'
        },
        'file': {
            'class': 'logging.FileHandler',
            'level': 'DEBUG',
            'formatter': 'detailed',
            'filename': 'logs/gifbudget.log',
            'mode': 'a'
        }
    },
    'loggers': {
        'gifbudget.ffmpeg': {
            'level': 'DEBUG',
            'propagate': True
        }
    },
    'root': {
        'level': 'DEBUG',
        'handlers': ['console', 'file']
    }
}


def _ensure_log_dirs(logging_config: dict) -> None:
    for handler in (logging_config.get('handlers') or {}).values():
        filename = handler.get('filename')
        if filename:
            directory = os.path.dirname(filename)
            if directory:
                os.makedirs(directory, exist_ok=True)


def setup_logging(config_path: Optional[str] = None, log_level: Optional[str] = None) -> logging.Logger:
    """
    Setup logging configuration from YAML file

    Args:
        config_path: Path to logging configuration file (``logging`` section is used)
        log_level: Override console level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    if config_path is None:
        config_path = os.path.join(get_package_base_dir(), 'config', 'logging.yaml')

    try:
        if os.path.exists(config_path):
            with open(config_path, 'r', encoding='utf-8') as file:
                config_data = yaml.safe_load(file) or {}
                logging_config = config_data.get('logging', DEFAULT_LOGGING_CONFIG)
        else:
            print(f"Warning: Logging config file not found at {config_path}, using default configuration")
            logging_config = DEFAULT_LOGGING_CONFIG

        if log_level:
            log_level = log_level.upper()
            if 'handlers' in logging_config and 'console' in logging_config['handlers']:
                logging_config['handlers']['console']['level'] = log_level

        _ensure_log_dirs(logging_config)

        try:
            logging.config.dictConfig(logging_config)
        except (ValueError, TypeError, AttributeError, ImportError) as config_error:
            logging.basicConfig(
                level=logging.INFO,
                format='%(asctime)s | %(levelname)-8s | %(message)s',
                datefmt='%H:%M:%S'
            )
            logger = logging.getLogger(ROOT_LOGGER)
            logger.error(f"Failed to apply logging configuration: {config_error}")
            logger.info("Using basic logging configuration as fallback")
            return logger

        for handler in logging.getLogger().handlers:
            if isinstance(handler, logging.StreamHandler) and getattr(handler.stream, 'name', None) == '<stdout>':
                handler.setFormatter(ColoredFormatter(
                    fmt='%(asctime)s | %(levelname)-8s | %(message)s',
                    datefmt='%H:%M:%S'
                ))

        logger = logging.getLogger(ROOT_LOGGER)
        logger.debug("Logging initialized")
        return logger

    except (OSError, yaml.YAMLError) as e:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s | %(levelname)-8s | %(message)s',
            datefmt='%H:%M:%S'
        )
        logger = logging.getLogger(ROOT_LOGGER)
        logger.error(f"Failed to load logging configuration: {e}")
        logger.info("Using basic logging configuration")
        return logger

