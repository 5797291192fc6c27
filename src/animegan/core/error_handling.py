"""
Error taxonomy and error recording for the conversion pipeline.

Every pipeline stage fails fast with a typed error. The UI/CLI layer maps
each error kind to a message through this module and never displays a
buffer produced by a failed run.
"""

import logging
import traceback
import time
from typing import Dict, Any, Optional, List
from pathlib import Path
import json

logger = logging.getLogger(__name__)


class PipelineError(Exception):
    """Base exception for conversion pipeline errors."""

    default_code = "UNKNOWN_ERROR"

    def __init__(self, message: str, error_code: str = None, details: Dict[str, Any] = None):
        super().__init__(message)
        self.error_code = error_code or self.default_code
        self.details = details or {}
        self.timestamp = time.time()


class InvalidInputError(PipelineError):
    """Malformed pixel buffer or tensor handed to the encoder or decoder."""
    default_code = "INVALID_INPUT"


class ModelLoadError(PipelineError):
    """The model buffer could not be turned into a usable inference session."""
    default_code = "MODEL_LOAD_ERROR"


class InferenceError(PipelineError):
    """The inference engine rejected or failed the inference call."""
    default_code = "INFERENCE_ERROR"


class ConfigurationError(PipelineError):
    """Errors related to configuration or setup."""
    default_code = "CONFIGURATION_ERROR"


_USER_MESSAGES = {
    InvalidInputError: "The image could not be processed because its pixel data is malformed.",
    ModelLoadError: "The model could not be loaded. It may be corrupted or incompatible.",
    InferenceError: "The model failed while converting the image.",
    ConfigurationError: "The conversion settings are invalid.",
}


def is_recoverable(error: Exception) -> bool:
    """Only engine failures may be retried, and only by the caller."""
    return isinstance(error, InferenceError)


def get_user_message(error: Exception) -> str:
    """
    Map an error to the message shown to the user.

    Args:
        error: The exception that occurred

    Returns:
        Human readable message for the error kind
    """
    for error_type, message in _USER_MESSAGES.items():
        if isinstance(error, error_type):
            return message
    if isinstance(error, FileNotFoundError):
        return f"File not found: {error}"
    return f"Unexpected error: {error}"


def get_recovery_suggestions(error: Exception) -> List[str]:
    """
    Get recovery suggestions for an error.

    Args:
        error: The error that occurred

    Returns:
        List of recovery suggestions
    """
    if isinstance(error, InvalidInputError):
        return [
            "Check that the buffer holds width * height * 4 bytes",
            "Check that the tensor holds 3 * 512 * 512 values",
            "Verify the image file opens in an image viewer",
        ]
    if isinstance(error, ModelLoadError):
        return [
            "Verify model file is not corrupted",
            "Check the model declares 'input' and 'output' tensors",
            "Acquire the model again",
        ]
    if isinstance(error, InferenceError):
        return [
            "Retry with a freshly loaded model",
            "Check the model expects a [1, 3, 512, 512] float32 input",
            "Use the CPU device",
        ]
    if isinstance(error, ConfigurationError):
        return [
            "Check configuration parameters",
            "Use default configuration as starting point",
        ]
    if isinstance(error, FileNotFoundError):
        return [
            "Check file path is correct",
            "Check file permissions",
        ]
    return []


class ErrorHandler:
    """
    Centralized error recording.

    Keeps a history of handled errors and optionally mirrors them to a log
    file and a JSON error log next to it.
    """

    max_saved_errors = 100

    def __init__(self, log_file: Optional[str] = None):
        """
        Initialize error handler.

        Args:
            log_file: Optional path to log file for error recording
        """
        self.log_file = log_file
        self.error_history: List[Dict[str, Any]] = []

        if log_file:
            self._setup_file_logging(log_file)

    def _setup_file_logging(self, log_file: str) -> None:
        """Setup file logging for errors."""
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.ERROR)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

        logging.getLogger().addHandler(file_handler)

    def handle_error(self, error: Exception, context: str = "") -> Dict[str, Any]:
        """
        Record and log an error with context and recovery information.

        Args:
            error: The exception that occurred
            context: Context description where error occurred

        Returns:
            Dictionary with error information
        """
        recoverable = is_recoverable(error)
        suggestions = get_recovery_suggestions(error)
        error_info = {
            'error_type': type(error).__name__,
            'error_message': str(error),
            'user_message': get_user_message(error),
            'context': context,
            'recoverable': recoverable,
            'recovery_suggestions': suggestions,
            'timestamp': time.time(),
            'traceback': traceback.format_exc()
        }

        if isinstance(error, PipelineError):
            error_info['error_code'] = error.error_code
            error_info['details'] = error.details

        logger.error(f"Error in {context}: {error}")
        if recoverable:
            logger.info(f"Error is recoverable. Suggestions: {suggestions}")

        self.error_history.append(error_info)

        if self.log_file:
            self._save_error_to_file(error_info)

        return error_info

    def _save_error_to_file(self, error_info: Dict[str, Any]) -> None:
        """Append error information to the JSON error log."""
        error_log_path = Path(self.log_file).with_suffix('.errors.json')

        existing_errors = []
        if error_log_path.exists():
            try:
                with open(error_log_path, 'r') as f:
                    existing_errors = json.load(f)
            except (json.JSONDecodeError, IOError):
                existing_errors = []

        existing_errors.append(error_info)
        existing_errors = existing_errors[-self.max_saved_errors:]

        try:
            with open(error_log_path, 'w') as f:
                json.dump(existing_errors, f, indent=2, default=str)
        except IOError as e:
            logger.warning(f"Failed to save error to file: {e}")

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of recent errors."""
        if not self.error_history:
            return {'total_errors': 0, 'recent_errors': []}

        error_types = {}
        for error in self.error_history:
            error_type = error['error_type']
            error_types[error_type] = error_types.get(error_type, 0) + 1

        return {
            'total_errors': len(self.error_history),
            'error_types': error_types,
            'recent_errors': self.error_history[-10:],
            'recoverable_errors': sum(1 for e in self.error_history if e['recoverable'])
        }


# Global error handler instance
_global_error_handler = None


def get_global_error_handler() -> ErrorHandler:
    """Get or create global error handler."""
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def setup_global_error_handling(log_file: Optional[str] = None) -> ErrorHandler:
    """
    Setup global error handling.

    Args:
        log_file: Optional log file path

    Returns:
        Configured ErrorHandler instance
    """
    global _global_error_handler
    _global_error_handler = ErrorHandler(log_file)
    return _global_error_handler
