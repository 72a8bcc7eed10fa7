"""
FFmpeg Encoder Module
Runs ffmpeg against a private workspace directory that holds the named
input, palette and trial artifacts of one execution context
"""

import os
import shutil
import subprocess
import tempfile
import logging
from dataclasses import dataclass
from typing import List, Optional, Union

from .error_handler import EncoderError, EncoderInitError
from .temp_file_manager import TempFileManager

logger = logging.getLogger(__name__)
ffmpeg_logger = logging.getLogger('gifbudget.ffmpeg')


@dataclass
class FFmpegResult:
    returncode: int
    stdout: str = ''
    stderr: str = ''

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class FFmpegEncoder:
    """External two-pass encoder bound to one workspace directory.

    Artifact names passed to ``exec`` are resolved relative to the workspace,
    so callers address files by name only. One compression at a time may use
    an instance.
    """

    def __init__(self, binary: str = 'ffmpeg', timeout: int = 120,
                 workspace_dir: Optional[str] = None):
        self.binary = binary
        self.timeout = timeout
        self._workspace_parent = workspace_dir
        self.workspace: Optional[str] = None
        self.loaded = False

    def load(self) -> None:
        """Locate ffmpeg and create the workspace; raises EncoderInitError."""
        if self.loaded:
            return
        resolved = shutil.which(self.binary)
        if not resolved:
            raise EncoderInitError(f"FFmpeg binary not found: {self.binary}")
        try:
            result = subprocess.run(
                [resolved, '-hide_banner', '-version'],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding='utf-8',
                errors='replace',
                timeout=30
            )
        except (subprocess.SubprocessError, OSError) as e:
            raise EncoderInitError(f"FFmpeg failed to start: {e}") from e
        if result.returncode != 0:
            raise EncoderInitError(f"FFmpeg failed to start: {result.stderr.strip()}")

        if self._workspace_parent:
            os.makedirs(self._workspace_parent, exist_ok=True)
        self.workspace = tempfile.mkdtemp(prefix='gifbudget_', dir=self._workspace_parent)
        TempFileManager.register(self.workspace)
        self.binary = resolved
        self.loaded = True
        version_line = (result.stdout or '').splitlines()[0] if result.stdout else 'unknown version'
        logger.info(f"FFmpeg loaded: {version_line}")
        logger.debug(f"Encoder workspace: {self.workspace}")

    def close(self) -> None:
        """Remove the workspace and everything left in it."""
        if self.workspace:
            shutil.rmtree(self.workspace, ignore_errors=True)
            TempFileManager.unregister(self.workspace)
            logger.debug(f"Removed encoder workspace: {self.workspace}")
        self.workspace = None
        self.loaded = False

    def _path(self, name: str) -> str:
        if not self.loaded or not self.workspace:
            raise EncoderError("Encoder is not loaded")
        if os.path.basename(name) != name:
            raise EncoderError(f"Artifact names must not contain directories: {name}")
        return os.path.join(self.workspace, name)

    def write_file(self, name: str, data: Union[bytes, bytearray, memoryview]) -> None:
        with open(self._path(name), 'wb') as handle:
            handle.write(data)

    def read_file(self, name: str) -> bytes:
        path = self._path(name)
        try:
            with open(path, 'rb') as handle:
                return handle.read()
        except FileNotFoundError as e:
            raise EncoderError(f"Artifact not found: {name}") from e

    def delete_file(self, name: str) -> None:
        """Delete an artifact; raises FileNotFoundError when it does not exist."""
        os.remove(self._path(name))

    def exec(self, args: List[str], log: Optional[logging.LoggerAdapter] = None) -> FFmpegResult:
        """
        Run ffmpeg with ``args`` inside the workspace.

        Args:
            args: Arguments after the binary (verbosity, inputs, filters, output)
            log: Logger (usually a task adapter) that receives encoder output lines

        Returns:
            FFmpegResult; a timeout or spawn failure is reported as returncode 1
        """
        if not self.loaded:
            raise EncoderError("Encoder is not loaded")
        cmd = [self.binary, '-hide_banner', '-nostdin', '-y'] + list(args)
        sink = log or ffmpeg_logger
        sink.debug(f"FFmpeg command: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                cwd=self.workspace,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding='utf-8',
                errors='replace',
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"FFmpeg timeout after {self.timeout}s")
            return FFmpegResult(returncode=1, stderr='TimeoutExpired')
        except (subprocess.SubprocessError, OSError) as e:
            logger.error(f"Error running FFmpeg: {e}", exc_info=True)
            return FFmpegResult(returncode=1, stderr=str(e))

        for line in (result.stderr or '').splitlines():
            if line.strip() and not line.startswith('frame='):
                sink.info(line)
        return FFmpegResult(returncode=result.returncode, stdout=result.stdout, stderr=result.stderr)
