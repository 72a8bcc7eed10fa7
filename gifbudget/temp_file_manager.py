# temp_file_manager.py
import logging
import shutil
from pathlib import Path


class TempFileManager:
    """Tracks encoder workspaces and output temp files so they are removed on exit."""
    _temp_paths = set()

    @classmethod
    def register(cls, path):
        """Register a temporary file or directory for cleanup."""
        cls._temp_paths.add(Path(path))

    @classmethod
    def unregister(cls, path):
        """Unregister a path (if it was moved or already cleaned)."""
        cls._temp_paths.discard(Path(path))

    @classmethod
    def cleanup(cls):
        """Clean up all registered temporary paths."""
        for path in cls._temp_paths.copy():
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                    logging.debug(f"Cleaned up temporary directory: {path}")
                elif path.exists():
                    path.unlink()
                    logging.debug(f"Cleaned up temporary file: {path}")
                cls._temp_paths.discard(path)
            except OSError as e:
                logging.error(f"Failed to clean up temporary path {path}: {e}")

    @classmethod
    def get_temp_count(cls):
        return len(cls._temp_paths)
