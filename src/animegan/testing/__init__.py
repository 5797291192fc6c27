"""
Testing utilities for the conversion pipeline.

This module provides synthetic images, synthetic ONNX models and test
fixtures for system testing.
"""

from .synthetic_data import SyntheticImageGenerator, SyntheticModelBuilder
from .test_fixtures import TestDataFixtures

__all__ = [
    'SyntheticImageGenerator',
    'SyntheticModelBuilder',
    'TestDataFixtures'
]
