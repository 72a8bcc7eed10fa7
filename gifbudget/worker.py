"""
Compression Worker
Owns one encoder and serializes compression requests through a queue.

Messages in:
    {'type': 'init'}
    {'type': 'compress', 'id': str, 'buffer': bytes, 'params': dict, 'meta': dict}

Messages out (through ``on_message``):
    {'type': 'ready'}
    {'type': 'log', 'id': str | None, 'payload': str}
    {'type': 'done', 'id': str, 'payload': envelope}
    {'type': 'error', 'id': str | None, 'payload': str}
"""

import logging
import queue
import threading
from typing import Any, Callable, Dict, Optional

from .compressor import GifBudgetCompressor
from .error_handler import EncoderInitError, GifBudgetError
from .ffmpeg_utils import FFmpegEncoder
from .logger_setup import ROOT_LOGGER, TaskLogHandler
from .models import CompressionRequest, ConstraintSet, ProfileTable

logger = logging.getLogger(__name__)

_STOP = object()

PARAM_DEFAULTS = {
    'max_mb': 9,
    'max_width': 1024,
    'tolerance_mb': 1,
    'min_duration': 0,
    'max_duration': 4,
    'duration_epsilon': 0.02,
    'prefer_stable_timing': True,
    'verbose': False,
    'show_encoder_log': False,
}


def constraints_from_params(params: Dict[str, Any]) -> ConstraintSet:
    """Build constraints from message params; missing or empty values take the defaults."""
    merged = dict(PARAM_DEFAULTS)
    for key, value in (params or {}).items():
        if key in merged and value not in (None, ''):
            merged[key] = value
    return ConstraintSet.from_mb(
        float(merged['max_mb']),
        float(merged['tolerance_mb']),
        int(merged['max_width']),
        min_duration=float(merged['min_duration']),
        max_duration=float(merged['max_duration']),
        duration_epsilon=float(merged['duration_epsilon']),
        prefer_stable_timing=bool(merged['prefer_stable_timing']),
        verbose=bool(merged['verbose']),
        show_encoder_log=bool(merged['show_encoder_log']),
    )


class CompressionWorker:
    """Single-threaded consumer of compression messages for one encoder instance"""

    def __init__(self, encoder: FFmpegEncoder, on_message: Callable[[Dict[str, Any]], None],
                 custom_profiles: Optional[ProfileTable] = None):
        self.encoder = encoder
        self.on_message = on_message
        self.custom_profiles = custom_profiles
        self.compressor = GifBudgetCompressor(encoder)
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._log_handler = TaskLogHandler(self._forward_log)
        self._raised_level = False
        self._stop_posted = False

    def _emit(self, message: Dict[str, Any]) -> None:
        try:
            self.on_message(message)
        except Exception as e:
            logger.error(f"Message consumer raised for {message.get('type')}: {e}", exc_info=True)

    def _forward_log(self, task_id: Optional[str], line: str) -> None:
        if threading.current_thread() is self._thread:
            self._emit({'type': 'log', 'id': task_id, 'payload': line})

    def start(self) -> 'CompressionWorker':
        if self._thread and self._thread.is_alive():
            return self
        package_logger = logging.getLogger(ROOT_LOGGER)
        package_logger.addHandler(self._log_handler)
        # Task log lines are INFO; an unconfigured package logger would drop them
        if package_logger.level == logging.NOTSET:
            package_logger.setLevel(self._log_handler.level)
            self._raised_level = True
        self._thread = threading.Thread(target=self._run, name='gifbudget-worker', daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Finish queued messages, then stop the thread and release the encoder.

        Returns:
            False when the thread is still busy after ``timeout``; the encoder
            is left open and ``stop`` may be called again
        """
        if self._thread is None:
            return True
        if not self._stop_posted:
            self._queue.put(_STOP)
            self._stop_posted = True
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning(f"Worker still busy after {timeout}s; encoder left open")
            return False
        self._thread = None
        self._stop_posted = False
        package_logger = logging.getLogger(ROOT_LOGGER)
        package_logger.removeHandler(self._log_handler)
        if self._raised_level:
            package_logger.setLevel(logging.NOTSET)
            self._raised_level = False
        self.encoder.close()
        return True

    def post_message(self, message: Dict[str, Any]) -> None:
        self._queue.put(message)

    def _run(self) -> None:
        while True:
            message = self._queue.get()
            try:
                if message is _STOP:
                    return
                self.handle_message(message)
            finally:
                self._queue.task_done()

    def join(self) -> None:
        """Block until every posted message has been handled."""
        self._queue.join()

    def handle_message(self, message: Dict[str, Any]) -> None:
        kind = message.get('type')
        if kind == 'init':
            self._handle_init()
        elif kind == 'compress':
            self._handle_compress(message)
        else:
            logger.warning(f"Ignoring unknown worker message type: {kind}")

    def _handle_init(self) -> None:
        try:
            self.encoder.load()
        except EncoderInitError as e:
            self._emit({'type': 'error', 'id': None, 'payload': f"FFmpeg failed to load: {e}"})
            return
        self._emit({'type': 'ready'})

    def _handle_compress(self, message: Dict[str, Any]) -> None:
        task_id = str(message.get('id'))
        meta = message.get('meta') or {}
        try:
            request = CompressionRequest(
                task_id=task_id,
                data=bytes(message.get('buffer') or b''),
                constraints=constraints_from_params(message.get('params') or {}),
                size=meta.get('size'),
                width=meta.get('width'),
                duration=meta.get('duration'),
                custom_profiles=self.custom_profiles
            )
            result = self.compressor.compress(request)
        except Exception as e:
            logger.error(f"[{task_id}] compression failed: {e}", exc_info=not isinstance(e, GifBudgetError))
            self._emit({'type': 'error', 'id': task_id, 'payload': str(e)})
            return
        self._emit({'type': 'done', 'id': task_id, 'payload': result.to_envelope()})
