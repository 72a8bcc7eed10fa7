"""
GIF Processing Utilities
Metadata probing for animated GIFs and small file helpers
"""

import io
import os
import logging
from typing import Union

from PIL import Image, ImageSequence, UnidentifiedImageError

from .models import MediaInfo

logger = logging.getLogger(__name__)

# Delay counted for frames whose delay is missing or zero (milliseconds)
DEFAULT_FRAME_DELAY_MS = 10


def _structured_probe(data: bytes) -> MediaInfo:
    with Image.open(io.BytesIO(data)) as img:
        if img.format != 'GIF':
            raise ValueError(f"Not a GIF image (format: {img.format})")
        width, height = img.size
        total_ms = 0
        frame_count = 0
        for frame in ImageSequence.Iterator(img):
            total_ms += frame.info.get('duration') or DEFAULT_FRAME_DELAY_MS
            frame_count += 1
    return MediaInfo(width=width, height=height, duration=total_ms / 1000.0, frame_count=frame_count)


def _raster_probe(data: bytes) -> MediaInfo:
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        width, height = img.size
    return MediaInfo(width=width or None, height=height or None)


def probe_gif(data: Union[bytes, bytearray]) -> MediaInfo:
    """
    Extract width, height, duration and frame count from GIF bytes.

    The frame-by-frame parse is tried first; when it fails a plain raster
    decode recovers the dimensions only. Anything unknown is left as None.

    Args:
        data: Raw file contents

    Returns:
        MediaInfo with nullable fields
    """
    data = bytes(data)
    try:
        info = _structured_probe(data)
        if info.width and info.height:
            return info
    except (UnidentifiedImageError, OSError, ValueError, EOFError) as e:
        logger.warning(f"GIF metadata parse failed: {e}")

    try:
        return _raster_probe(data)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning(f"Raster decode failed, metadata unknown: {e}")
        return MediaInfo()


def probe_gif_file(path: str) -> MediaInfo:
    with open(path, 'rb') as handle:
        return probe_gif(handle.read())


def is_gif_file(path: str) -> bool:
    """True for files with a .gif suffix or a GIF87a/GIF89a signature."""
    if path.lower().endswith('.gif'):
        return True
    try:
        with open(path, 'rb') as handle:
            return handle.read(6) in (b'GIF87a', b'GIF89a')
    except OSError:
        return False


def output_path_for(input_path: str, output_dir: str, suffix: str = '_compressed') -> str:
    stem = os.path.splitext(os.path.basename(input_path))[0]
    return os.path.join(output_dir, f"{stem}{suffix}.gif")
