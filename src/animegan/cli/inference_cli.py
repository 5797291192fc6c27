#!/usr/bin/env python3
"""
Command-line interface for AnimeGAN image conversion.

Converts single images or whole directories with an ONNX model, with
configurable engine settings and a JSON report of the results.
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional
import json

from ..inference.api import ImageConversionAPI
from ..core.config import (
    PipelineConfig, RESAMPLE_FILTERS, CHANNEL_ORDERS, DEVICES, OPTIMIZATION_LEVELS
)
from ..core.error_handling import (
    ConfigurationError, setup_global_error_handling, get_user_message
)

# PipelineConfig field -> argparse destination
CONFIG_ARGS = {
    'resample': 'resample',
    'channel_order': 'channel_order',
    'device': 'device',
    'intra_op_num_threads': 'threads',
    'graph_optimization_level': 'optimization_level',
}


class ConversionCLI:
    """Command-line interface for the conversion pipeline."""

    output_suffix = "_anime"

    def __init__(self):
        """Initialize conversion CLI."""
        self.parser = self._create_parser()
        self.logger = logging.getLogger(__name__)

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser for conversion CLI."""
        parser = argparse.ArgumentParser(
            description="Convert photos with a pretrained image-to-image ONNX model",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Convert one image
  animegan-convert --model animegan.onnx --input photo.jpg --output anime.png

  # Convert every JPEG in a directory
  animegan-convert --model animegan.onnx --input-dir photos/ --output-dir anime/ \\
    --file-pattern '*.jpg'

  # Run on GPU with the plain RGB output mapping
  animegan-convert --model animegan.onnx --input photo.jpg --output anime.png \\
    --device cuda --channel-order rgb
            """
        )

        required = parser.add_argument_group('required arguments')
        required.add_argument(
            '--model', type=str, required=True,
            help='Path to ONNX model file (.onnx)'
        )

        # Input/output - either single file or batch processing
        io_group = parser.add_mutually_exclusive_group(required=True)
        io_group.add_argument(
            '--input', type=str,
            help='Input image to convert'
        )
        io_group.add_argument(
            '--input-dir', type=str,
            help='Directory containing input images for batch processing'
        )

        parser.add_argument(
            '--output', type=str,
            help='Output path for the converted image (required with --input)'
        )
        parser.add_argument(
            '--output-dir', type=str,
            help='Output directory for batch processing (required with --input-dir)'
        )

        processing = parser.add_argument_group('processing parameters')
        processing.add_argument(
            '--resample', type=str, choices=RESAMPLE_FILTERS, default=argparse.SUPPRESS,
            help='Resize filter for inputs that are not 512x512 (default: bilinear)'
        )
        processing.add_argument(
            '--channel-order', type=str, choices=CHANNEL_ORDERS, default=argparse.SUPPRESS,
            help='How output planes map to red/green/blue (default: swapped)'
        )

        hardware = parser.add_argument_group('hardware and performance')
        hardware.add_argument(
            '--device', type=str, choices=DEVICES, default=argparse.SUPPRESS,
            help='Execution device (default: auto)'
        )
        hardware.add_argument(
            '--threads', type=int, default=argparse.SUPPRESS,
            help='Intra-op thread count, 0 lets the engine decide (default: 0)'
        )
        hardware.add_argument(
            '--optimization-level', type=str, choices=OPTIMIZATION_LEVELS, default=argparse.SUPPRESS,
            help='Graph optimization level (default: all)'
        )

        output_opts = parser.add_argument_group('output options')
        output_opts.add_argument(
            '--overwrite', action='store_true',
            help='Overwrite existing output files'
        )
        output_opts.add_argument(
            '--save-report', type=str,
            help='Save per-file results to a JSON file'
        )

        logging_group = parser.add_argument_group('progress and logging')
        logging_group.add_argument(
            '--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], default='INFO',
            help='Logging level (default: INFO)'
        )
        logging_group.add_argument(
            '--progress', action='store_true', default=True,
            help='Show progress (default: True)'
        )
        logging_group.add_argument(
            '--no-progress', action='store_false', dest='progress',
            help='Hide progress'
        )
        logging_group.add_argument(
            '--quiet', action='store_true',
            help='Suppress all output except errors'
        )
        logging_group.add_argument(
            '--config-file', type=str,
            help='Load configuration from JSON file'
        )
        logging_group.add_argument(
            '--save-config', type=str,
            help='Save current configuration to JSON file'
        )

        batch = parser.add_argument_group('batch processing options')
        batch.add_argument(
            '--max-files', type=int,
            help='Maximum number of files to process in batch mode'
        )
        batch.add_argument(
            '--file-pattern', type=str, default='*',
            help='File pattern for batch processing (default: all supported images)'
        )
        batch.add_argument(
            '--recursive', action='store_true',
            help='Process files recursively in subdirectories'
        )

        return parser

    def _setup_logging(self, log_level: str, quiet: bool = False) -> None:
        """Setup logging configuration."""
        if quiet:
            log_level = 'ERROR'

        setup_global_error_handling()

        logging.basicConfig(
            level=getattr(logging, log_level),
            format='%(asctime)s - %(levelname)s - %(message)s',
            handlers=[logging.StreamHandler(sys.stdout)]
        )

        self.logger.info(f"Logging configured: level={log_level}")

    def _load_config_from_file(self, config_file: str) -> dict:
        """
        Load configuration from JSON file.

        Raises:
            ConfigurationError: If the file cannot be read or parsed
        """
        try:
            with open(config_file, 'r') as f:
                config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Failed to load configuration from {config_file}: {e}",
                details={'config_file': config_file}
            ) from e
        self.logger.info(f"Loaded configuration from {config_file}")
        return config

    def _save_config_to_file(self, config: PipelineConfig, config_file: str) -> None:
        """Save configuration to JSON file."""
        try:
            with open(config_file, 'w') as f:
                json.dump(config.to_dict(), f, indent=2)
            self.logger.info(f"Saved configuration to {config_file}")
        except OSError as e:
            self.logger.error(f"Failed to save configuration to {config_file}: {e}")

    def _create_pipeline_config(self, args: argparse.Namespace) -> PipelineConfig:
        """Create pipeline configuration from arguments, file values first."""
        values = {}
        if args.config_file:
            values.update(self._load_config_from_file(args.config_file))

        # Only flags given on the command line are set on args; they win over the file
        for key, arg_name in CONFIG_ARGS.items():
            if hasattr(args, arg_name):
                values[key] = getattr(args, arg_name)

        return PipelineConfig.from_dict(values)

    def _find_input_files(self, input_dir: str, pattern: str, recursive: bool,
                          max_files: Optional[int], handler) -> List[str]:
        """Find supported input images for batch processing."""
        input_path = Path(input_dir)
        if not input_path.exists():
            raise FileNotFoundError(f"Input directory not found: {input_path}")

        candidates = input_path.rglob(pattern) if recursive else input_path.glob(pattern)
        files = sorted(str(f) for f in candidates if f.is_file() and handler.is_supported(f))

        if not files:
            raise FileNotFoundError(f"No images matching pattern '{pattern}' found in {input_path}")

        if max_files:
            files = files[:max_files]

        self.logger.info(f"Found {len(files)} files for processing")
        return files

    def _output_path_for(self, input_file: str, output_dir: Path) -> Path:
        """Name the converted file after its input."""
        input_path = Path(input_file)
        return output_dir / f"{input_path.stem}{self.output_suffix}{input_path.suffix}"

    def _create_progress_callback(self, show_progress: bool, filename: str = ""):
        """Create progress callback function."""
        if not show_progress:
            return None

        def progress_callback(message: str, progress: float):
            prefix = f"{filename}: " if filename else ""
            print(f"\r{prefix}{message} ({progress*100:.1f}%)", end='', flush=True)
            if progress >= 1.0:
                print()

        return progress_callback

    def _save_report(self, report: list, report_file: str) -> None:
        """Save per-file results to JSON file."""
        try:
            with open(report_file, 'w') as f:
                json.dump(report, f, indent=2, default=str)
            self.logger.info(f"Saved report to {report_file}")
        except OSError as e:
            self.logger.error(f"Failed to save report to {report_file}: {e}")

    def _process_single_file(self, api: ImageConversionAPI, input_path: str,
                             output_path: str, show_progress: bool) -> dict:
        """Process a single file."""
        self.logger.info(f"Processing: {input_path} -> {output_path}")

        progress_callback = self._create_progress_callback(show_progress, Path(input_path).name)

        start_time = time.time()
        result = api.convert_image(input_path, output_path, progress_callback=progress_callback)
        processing_time = time.time() - start_time

        if result.success:
            self.logger.info(f"Successfully processed {input_path} in {processing_time:.2f}s")
        else:
            self.logger.error(f"Failed to process {input_path}: {result.error_message}")

        metrics = api.get_conversion_metrics(result)
        metrics['input_file'] = input_path
        metrics['output_file'] = output_path
        return metrics

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run conversion CLI."""
        parsed_args = self.parser.parse_args(args)

        if parsed_args.input and not parsed_args.output:
            print("Error: --output is required when using --input")
            return 1
        if parsed_args.input_dir and not parsed_args.output_dir:
            print("Error: --output-dir is required when using --input-dir")
            return 1

        self._setup_logging(parsed_args.log_level, parsed_args.quiet)

        try:
            config = self._create_pipeline_config(parsed_args)
        except ConfigurationError as e:
            self.logger.error(f"{get_user_message(e)} {e}")
            return 1

        if parsed_args.save_config:
            self._save_config_to_file(config, parsed_args.save_config)

        try:
            with ImageConversionAPI(config) as api:
                return self._run_conversions(api, parsed_args)
        except KeyboardInterrupt:
            self.logger.info("Processing interrupted by user")
            return 1
        except FileNotFoundError as e:
            self.logger.error(get_user_message(e))
            return 1

    def _run_conversions(self, api: ImageConversionAPI, parsed_args: argparse.Namespace) -> int:
        """Load the model and convert every requested file."""
        if not parsed_args.quiet:
            self.logger.info("Starting image conversion")
            system_info = api.get_system_info()
            self.logger.info(f"ONNX Runtime {system_info['onnxruntime_version']}, "
                             f"providers: {system_info['available_providers']}")

        self.logger.info(f"Loading model: {parsed_args.model}")
        if not api.load_model(parsed_args.model):
            last_error = api.error_handler.error_history[-1] if api.error_handler.error_history else {}
            self.logger.error(last_error.get('user_message', "Failed to load model"))
            return 1

        report = []

        if parsed_args.input:
            output_path = Path(parsed_args.output)
            if output_path.exists() and not parsed_args.overwrite:
                self.logger.error(f"Output file exists: {output_path}. Use --overwrite to replace.")
                return 1

            report.append(self._process_single_file(
                api, parsed_args.input, str(output_path), parsed_args.progress
            ))
        else:
            input_files = self._find_input_files(
                parsed_args.input_dir, parsed_args.file_pattern,
                parsed_args.recursive, parsed_args.max_files, api.image_handler
            )

            output_dir = Path(parsed_args.output_dir)
            output_dir.mkdir(parents=True, exist_ok=True)

            for i, input_file in enumerate(input_files):
                output_path = self._output_path_for(input_file, output_dir)

                if output_path.exists() and not parsed_args.overwrite:
                    self.logger.warning(f"Skipping existing file: {output_path}")
                    continue

                self.logger.info(f"Processing file {i+1}/{len(input_files)}")
                report.append(self._process_single_file(
                    api, input_file, str(output_path), parsed_args.progress
                ))

        if parsed_args.save_report and report:
            self._save_report(report, parsed_args.save_report)

        successful = sum(1 for m in report if m.get('success', False))
        total = len(report)

        if not parsed_args.quiet:
            self.logger.info(f"Processing complete: {successful}/{total} files successful")
            if successful:
                avg_time = sum(m['processing_time'] for m in report if m['success']) / successful
                self.logger.info(f"Average processing time: {avg_time:.2f}s")

        return 0 if successful == total else 1


def main():
    """Main entry point for conversion CLI."""
    cli = ConversionCLI()
    return cli.run()


if __name__ == '__main__':
    sys.exit(main())
