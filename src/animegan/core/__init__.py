"""
Core Components

Shared configuration, error types, pixel buffers and image file handling.
"""

from .config import PipelineConfig, ConversionResult
from .data_models import PixelBuffer
from .error_handling import (
    PipelineError, InvalidInputError, ModelLoadError, InferenceError, ConfigurationError
)
from .image_handler import ImageFileHandler

__all__ = [
    'PipelineConfig',
    'ConversionResult',
    'PixelBuffer',
    'PipelineError',
    'InvalidInputError',
    'ModelLoadError',
    'InferenceError',
    'ConfigurationError',
    'ImageFileHandler'
]
