"""
Inference Pipeline

Pixel encoding, ONNX Runtime sessions, tensor decoding and the high-level
conversion API.
"""

from .encoder import PixelEncoder
from .decoder import PixelDecoder
from .session import InferenceSession
from .pipeline import ConversionPipeline
from .api import ImageConversionAPI

__all__ = [
    'PixelEncoder',
    'PixelDecoder',
    'InferenceSession',
    'ConversionPipeline',
    'ImageConversionAPI'
]
