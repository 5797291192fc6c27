"""
AnimeGAN Conversion Pipeline

Converts ARGB pixel buffers into anime-style images with an ONNX model.
Provides the encode -> infer -> decode pipeline, a file-level API and a CLI.
"""

__version__ = "1.0.0"
