"""
Error Handling Module
Exception taxonomy for the compression engine plus centralized error
categorization, logging and summaries for batch runs.
"""

import logging
import os
from typing import Dict, Any, List, Optional
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class GifBudgetError(Exception):
    """Base class for errors raised by the compression engine"""


class ConstraintError(GifBudgetError, ValueError):
    """Malformed constraints or profile table; rejected before any trial runs"""


class EncoderError(GifBudgetError):
    """A single encoder invocation failed; recoverable at trial level"""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ''):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class EncoderInitError(GifBudgetError):
    """The encoder could not be initialized; fatal for the execution context"""


class ErrorCategory(Enum):
    """Categories of processing errors for better handling and reporting"""
    CONSTRAINTS = "constraints"
    ENCODER = "encoder"
    ENCODER_INIT = "encoder_init"
    FILE_VALIDATION = "file_validation"
    PERMISSION = "permission"
    GENERAL = "general"


@dataclass
class ProcessingError:
    """One failed input in a batch run"""
    category: ErrorCategory
    message: str
    file_path: str
    exception_type: str
    severity: str  # 'warning', 'error' or 'critical'
    suggestions: List[str]
    retryable: bool = True
    context: Optional[str] = None

    def get_short_description(self) -> str:
        return f"{self.category.value}: {self.message}"

    def get_detailed_description(self) -> str:
        lines = [f"{os.path.basename(self.file_path) or self.file_path}: {self.message}"]
        if self.context:
            lines[0] += f" [{self.context}]"
        lines.extend(f"  - {hint}" for hint in self.suggestions)
        return "\n".join(lines)


_SUGGESTIONS = {
    ErrorCategory.CONSTRAINTS: [
        "Check --max-size, --tolerance and --max-width are positive",
        "Make sure --min-duration is not above --max-duration",
    ],
    ErrorCategory.ENCODER: [
        "Check the GIF file integrity",
        "Update the FFmpeg installation",
    ],
    ErrorCategory.ENCODER_INIT: [
        "Install FFmpeg and make sure it is on PATH",
        "Point gif_budget.encoder.binary at a working ffmpeg executable",
    ],
    ErrorCategory.FILE_VALIDATION: [
        "Check file integrity",
        "Re-export the animation as GIF",
    ],
    ErrorCategory.PERMISSION: [
        "Check file permissions",
        "Ensure output directory is writable",
    ],
}


_FALLBACK_SUGGESTIONS = ["Re-run with --debug and check the log file"]


def _classify(exception: Exception):
    """Return (category, severity, retryable) for an exception raised while processing a GIF."""
    text = str(exception).lower()
    if isinstance(exception, ConstraintError):
        return ErrorCategory.CONSTRAINTS, 'error', False
    if isinstance(exception, EncoderInitError):
        return ErrorCategory.ENCODER_INIT, 'critical', False
    if isinstance(exception, EncoderError) or 'ffmpeg' in text:
        return ErrorCategory.ENCODER, 'error', True
    if isinstance(exception, PermissionError) or 'permission' in text:
        return ErrorCategory.PERMISSION, 'error', False
    if any(word in text for word in ('invalid', 'corrupt', 'not a gif', 'cannot identify')):
        return ErrorCategory.FILE_VALIDATION, 'warning', False
    return ErrorCategory.GENERAL, 'error', True


class ErrorHandler:
    """Collects per-file failures of a batch and reports them by category"""

    def __init__(self):
        self.error_counts = {category: 0 for category in ErrorCategory}
        self.processed_errors: List[ProcessingError] = []

    def categorize_error(self, exception: Exception, file_path: str,
                         context: str = None) -> ProcessingError:
        category, severity, retryable = _classify(exception)
        return ProcessingError(
            category=category,
            message=str(exception),
            file_path=file_path,
            exception_type=type(exception).__name__,
            severity=severity,
            suggestions=self.get_category_suggestions(category),
            retryable=retryable,
            context=context
        )

    def handle_error(self, exception: Exception, file_path: str,
                     context: str = None, continue_processing: bool = True) -> ProcessingError:
        """Record a failure and log it at a level matching its severity"""
        error = self.categorize_error(exception, file_path, context)
        self.processed_errors.append(error)
        self.error_counts[error.category] += 1

        if error.severity == 'critical':
            logger.error(f"Cannot continue: {error.get_detailed_description()}")
        elif error.severity == 'error':
            logger.error(f"{os.path.basename(file_path)} failed ({error.get_short_description()})")
            logger.info(f"Hint: {error.suggestions[0]}")
        else:
            logger.warning(f"{os.path.basename(file_path)} skipped ({error.get_short_description()})")

        if continue_processing:
            logger.debug("Moving on to the next input")
        return error

    def get_error_summary(self) -> Dict[str, Any]:
        """Counts of recorded failures by category, severity and retryability"""
        if not self.processed_errors:
            return {'total_errors': 0, 'categories': {}, 'success_rate': 100.0}

        severities: Dict[str, int] = {}
        for error in self.processed_errors:
            severities[error.severity] = severities.get(error.severity, 0) + 1
        retryable = sum(1 for error in self.processed_errors if error.retryable)
        categories = {cat.value: count for cat, count in self.error_counts.items() if count}

        return {
            'total_errors': len(self.processed_errors),
            'categories': categories,
            'severity_distribution': severities,
            'critical_errors': severities.get('critical', 0),
            'retryable_errors': retryable,
            'non_retryable_errors': len(self.processed_errors) - retryable
        }

    def log_batch_summary(self, total_files: int, successful_files: int):
        failed = total_files - successful_files
        logger.info(f"Batch finished: {successful_files}/{total_files} GIF(s) written, {failed} failed")
        if not failed:
            return
        for category, count in self.error_counts.items():
            if count:
                logger.error(f"  {category.value}: {count}")

    def get_category_suggestions(self, category: ErrorCategory) -> List[str]:
        return list(_SUGGESTIONS.get(category, _FALLBACK_SUGGESTIONS))
