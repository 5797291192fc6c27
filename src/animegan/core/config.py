"""
Configuration classes for the conversion pipeline.
"""

from dataclasses import dataclass, field, asdict
from typing import Tuple, Optional, Dict, Any

from .error_handling import ConfigurationError

# Fixed model contract
TARGET_SIZE = 512
NUM_CHANNELS = 3
TENSOR_SHAPE = (1, NUM_CHANNELS, TARGET_SIZE, TARGET_SIZE)
TENSOR_SIZE = NUM_CHANNELS * TARGET_SIZE * TARGET_SIZE

RESAMPLE_FILTERS = ("bilinear", "bicubic", "lanczos")
CHANNEL_ORDERS = ("swapped", "bgr", "rgb")
DEVICES = ("auto", "cpu", "cuda", "coreml")
OPTIMIZATION_LEVELS = ("disable", "basic", "extended", "all")


@dataclass
class PipelineConfig:
    """Configuration for the encode -> infer -> decode pipeline."""

    # Model contract
    target_size: int = TARGET_SIZE
    input_name: str = "input"
    output_name: str = "output"

    # Pre/post processing
    resample: str = "bilinear"  # bilinear, bicubic, lanczos
    channel_order: str = "swapped"  # swapped, bgr, rgb

    # Engine
    device: str = "auto"  # auto, cpu, cuda, coreml
    intra_op_num_threads: int = 0  # 0 lets the engine decide
    graph_optimization_level: str = "all"  # disable, basic, extended, all
    validate_io_names: bool = True

    def validate(self) -> None:
        """
        Check configuration values.

        Raises:
            ConfigurationError: If any value is out of range
        """
        if self.target_size <= 0:
            raise ConfigurationError(
                f"target_size must be positive, got {self.target_size}",
                details={'target_size': self.target_size}
            )
        if self.resample not in RESAMPLE_FILTERS:
            raise ConfigurationError(
                f"Unsupported resample filter '{self.resample}', "
                f"expected one of {RESAMPLE_FILTERS}",
                details={'resample': self.resample}
            )
        if self.channel_order not in CHANNEL_ORDERS:
            raise ConfigurationError(
                f"Unsupported channel order '{self.channel_order}', "
                f"expected one of {CHANNEL_ORDERS}",
                details={'channel_order': self.channel_order}
            )
        if self.device not in DEVICES:
            raise ConfigurationError(
                f"Unsupported device '{self.device}', expected one of {DEVICES}",
                details={'device': self.device}
            )
        if self.graph_optimization_level not in OPTIMIZATION_LEVELS:
            raise ConfigurationError(
                f"Unsupported graph optimization level '{self.graph_optimization_level}'",
                details={'graph_optimization_level': self.graph_optimization_level}
            )
        if self.intra_op_num_threads < 0:
            raise ConfigurationError(
                "intra_op_num_threads must be >= 0",
                details={'intra_op_num_threads': self.intra_op_num_threads}
            )
        if not self.input_name or not self.output_name:
            raise ConfigurationError("Tensor names must not be empty")

    @property
    def tensor_shape(self) -> Tuple[int, int, int, int]:
        """Declared [batch, channel, height, width] shape."""
        return (1, NUM_CHANNELS, self.target_size, self.target_size)

    @property
    def tensor_size(self) -> int:
        """Number of float32 elements in one tensor."""
        return NUM_CHANNELS * self.target_size * self.target_size

    def to_dict(self) -> Dict[str, Any]:
        """Serialize configuration for JSON files."""
        return asdict(self)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'PipelineConfig':
        """
        Build a configuration from a dictionary, ignoring unknown keys.

        Args:
            values: Mapping of field names to values

        Returns:
            Validated PipelineConfig
        """
        known = {k: v for k, v in values.items() if k in cls.__dataclass_fields__}
        config = cls(**known)
        config.validate()
        return config


@dataclass
class ConversionResult:
    """Result object describing one image conversion."""

    # Processing status
    success: bool
    processing_time: float

    # Data information
    input_size: Tuple[int, int]  # (width, height)
    output_path: Optional[str] = None
    output: Optional[Any] = None  # PixelBuffer when converted in memory

    # Error handling
    error_message: Optional[str] = None
    error_type: Optional[str] = None
    warnings: list = field(default_factory=list)

    # Seconds spent per stage
    stage_timings: Dict[str, float] = field(default_factory=dict)

    def add_warning(self, message: str) -> None:
        """Add a warning message to the result."""
        self.warnings.append(message)

    def add_stage_timing(self, stage: str, seconds: float) -> None:
        """Record time spent in a stage."""
        self.stage_timings[stage] = seconds

    def is_successful(self) -> bool:
        """Check if the conversion was successful."""
        return self.success and self.error_message is None
