#!/usr/bin/env python3
"""
Setup script for the AnimeGAN conversion pipeline.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text(encoding="utf-8") if readme_path.exists() else ""

# Read requirements
requirements_path = Path(__file__).parent / "requirements.txt"
requirements = []
if requirements_path.exists():
    requirements = requirements_path.read_text().strip().split('\n')
    requirements = [req.strip() for req in requirements if req.strip() and not req.startswith('#')]

setup(
    name="animegan-pipeline",
    version="1.0.0",
    description="Photo to anime-style image conversion with AnimeGAN ONNX models",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src", include=["animegan", "animegan.*"]),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Image Processing",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=6.0",
            "pytest-cov>=2.0",
            "onnx>=1.13",
        ],
        "dev": [
            "pytest>=6.0",
            "pytest-cov>=2.0",
            "onnx>=1.13",
            "black>=21.0",
            "flake8>=3.8",
            "mypy>=0.800",
            "pre-commit>=2.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "animegan-convert=animegan.cli.inference_cli:main",
        ],
    },
    include_package_data=True,
    package_data={
        "": ["*.md", "*.txt"],
    },
    zip_safe=False,
    keywords=[
        "animegan",
        "style transfer",
        "onnx",
        "onnxruntime",
        "image processing",
        "image conversion",
    ],
)
