"""
Command Line Interface

Command line entry point for converting images.
"""

from .inference_cli import ConversionCLI

__all__ = ['ConversionCLI']
