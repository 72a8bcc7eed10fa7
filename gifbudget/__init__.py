"""GIF Budget package root.

Export primary classes and CLI for convenience when installed via pip.
"""

from .cli import main as cli_main  # noqa: F401
from .compressor import GifBudgetCompressor, check_constraints  # noqa: F401
from .config_manager import ConfigManager  # noqa: F401
from .duration import compute_retiming_factor  # noqa: F401
from .error_handler import ConstraintError, EncoderError, EncoderInitError, GifBudgetError  # noqa: F401
from .ffmpeg_utils import FFmpegEncoder  # noqa: F401
from .gif_utils import probe_gif  # noqa: F401
from .models import (CompressionRequest, CompressionResult, ConstraintSet, Profile,  # noqa: F401
                     TrialResult, PASS_THROUGH_INDEX)
from .profiles import build_profile_table  # noqa: F401
from .search_controller import SearchController  # noqa: F401
from .trial_runner import TrialContext, TrialRunner  # noqa: F401
from .worker import CompressionWorker  # noqa: F401
