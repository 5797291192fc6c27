"""
Unit tests for the command-line interface.
"""

import pytest
import tempfile
import shutil
import json
from pathlib import Path
from unittest.mock import patch

try:
    import onnx
    ONNX_AVAILABLE = True
except ImportError:
    ONNX_AVAILABLE = False

from animegan.cli.inference_cli import ConversionCLI, main
from animegan.core.error_handling import ConfigurationError
from animegan.core.image_handler import ImageFileHandler
from animegan.testing.test_fixtures import TestDataFixtures


class TestConversionCLIParser:
    """Test argument parsing and configuration building."""

    def setup_method(self):
        """Setup test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.cli = ConversionCLI()

    def teardown_method(self):
        """Cleanup test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_cli_init(self):
        """Test CLI initialization."""
        assert self.cli.parser is not None
        assert self.cli.logger is not None

    def test_parser_required_arguments(self):
        """Test parser with missing required arguments."""
        with pytest.raises(SystemExit):
            self.cli.parser.parse_args([])

    def test_input_modes_mutually_exclusive(self):
        """--input and --input-dir cannot be combined."""
        with pytest.raises(SystemExit):
            self.cli.parser.parse_args([
                '--model', 'm.onnx', '--input', 'a.png', '--input-dir', 'photos'
            ])

    def test_parser_defaults(self):
        """Test parser defaults."""
        args = self.cli.parser.parse_args(['--model', 'm.onnx', '--input', 'a.png'])

        assert args.progress is True
        assert args.file_pattern == '*'

        # Unset config flags fall back to PipelineConfig defaults
        assert not hasattr(args, 'device')
        config = self.cli._create_pipeline_config(args)
        assert config.resample == 'bilinear'
        assert config.channel_order == 'swapped'
        assert config.device == 'auto'
        assert config.intra_op_num_threads == 0
        assert config.graph_optimization_level == 'all'

    def test_parser_rejects_nearest(self):
        """Nearest-neighbour resampling is not a choice."""
        with pytest.raises(SystemExit):
            self.cli.parser.parse_args([
                '--model', 'm.onnx', '--input', 'a.png', '--resample', 'nearest'
            ])

    def test_create_pipeline_config(self):
        """Flags map onto PipelineConfig fields."""
        args = self.cli.parser.parse_args([
            '--model', 'm.onnx', '--input', 'a.png',
            '--device', 'cpu', '--threads', '2',
            '--optimization-level', 'basic', '--channel-order', 'bgr',
            '--resample', 'lanczos'
        ])
        config = self.cli._create_pipeline_config(args)

        assert config.device == 'cpu'
        assert config.intra_op_num_threads == 2
        assert config.graph_optimization_level == 'basic'
        assert config.channel_order == 'bgr'
        assert config.resample == 'lanczos'

    def test_config_file_values_used(self):
        """Values from a config file apply when no flag overrides them."""
        config_file = Path(self.temp_dir) / "config.json"
        config_file.write_text(json.dumps({'channel_order': 'rgb', 'device': 'cpu'}))

        args = self.cli.parser.parse_args([
            '--model', 'm.onnx', '--input', 'a.png', '--config-file', str(config_file)
        ])
        config = self.cli._create_pipeline_config(args)

        assert config.channel_order == 'rgb'
        assert config.device == 'cpu'
        assert config.resample == 'bilinear'

    def test_explicit_flag_overrides_config_file(self):
        """An explicit flag wins over the config file."""
        config_file = Path(self.temp_dir) / "config.json"
        config_file.write_text(json.dumps({'channel_order': 'rgb'}))

        args = self.cli.parser.parse_args([
            '--model', 'm.onnx', '--input', 'a.png',
            '--config-file', str(config_file), '--channel-order', 'bgr'
        ])

        assert self.cli._create_pipeline_config(args).channel_order == 'bgr'

    def test_explicit_default_valued_flag_overrides_config_file(self):
        """A flag typed with its default value still wins over the file."""
        config_file = Path(self.temp_dir) / "config.json"
        config_file.write_text(json.dumps({
            'device': 'cpu', 'intra_op_num_threads': 4, 'resample': 'lanczos'
        }))

        args = self.cli.parser.parse_args([
            '--model', 'm.onnx', '--input', 'a.png', '--config-file', str(config_file),
            '--device', 'auto', '--threads', '0'
        ])
        config = self.cli._create_pipeline_config(args)

        assert config.device == 'auto'
        assert config.intra_op_num_threads == 0
        assert config.resample == 'lanczos'

    def test_bad_config_file(self):
        """Unreadable config files raise ConfigurationError."""
        config_file = Path(self.temp_dir) / "broken.json"
        config_file.write_text("{not json")

        with pytest.raises(ConfigurationError):
            self.cli._load_config_from_file(str(config_file))

    def test_run_bad_config_file_returns_error(self):
        """Invalid config values end the run with exit code 1."""
        config_file = Path(self.temp_dir) / "config.json"
        config_file.write_text(json.dumps({'device': 'abacus'}))

        exit_code = self.cli.run([
            '--model', 'm.onnx', '--input', 'a.png', '--output', 'b.png',
            '--config-file', str(config_file), '--quiet'
        ])
        assert exit_code == 1

    def test_output_required_with_input(self):
        """--output is required with --input."""
        assert self.cli.run(['--model', 'm.onnx', '--input', 'a.png']) == 1

    def test_output_dir_required_with_input_dir(self):
        """--output-dir is required with --input-dir."""
        assert self.cli.run(['--model', 'm.onnx', '--input-dir', 'photos']) == 1

    def test_output_path_naming(self):
        """Batch outputs keep the stem and extension with a suffix."""
        output = self.cli._output_path_for("photos/cat.jpg", Path("out"))
        assert output == Path("out") / "cat_anime.jpg"

    def test_progress_callback_disabled(self):
        """No callback when progress is off."""
        assert self.cli._create_progress_callback(False) is None
        assert callable(self.cli._create_progress_callback(True, "a.png"))

    def test_find_input_files(self):
        """Only supported images are picked up, sorted and limited."""
        root = Path(self.temp_dir)
        for name in ["b.png", "a.jpg", "notes.txt", "c.tif"]:
            (root / name).write_bytes(b"x")
        (root / "sub").mkdir()
        (root / "sub" / "d.png").write_bytes(b"x")

        handler = ImageFileHandler()

        files = self.cli._find_input_files(str(root), '*', False, None, handler)
        assert [Path(f).name for f in files] == ["a.jpg", "b.png", "c.tif"]

        files = self.cli._find_input_files(str(root), '*.png', True, None, handler)
        assert sorted(Path(f).name for f in files) == ["b.png", "d.png"]

        files = self.cli._find_input_files(str(root), '*', False, 2, handler)
        assert len(files) == 2

    def test_find_input_files_none_found(self):
        """An empty directory raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            self.cli._find_input_files(self.temp_dir, '*', False, None, ImageFileHandler())

    @patch('animegan.cli.inference_cli.ConversionCLI.run')
    def test_main_delegates_to_run(self, mock_run):
        """main() returns the CLI exit code."""
        mock_run.return_value = 0
        assert main() == 0
        mock_run.assert_called_once_with()


@pytest.mark.skipif(not ONNX_AVAILABLE, reason="onnx not available")
class TestConversionCLIRun:
    """Run the CLI against synthetic models and images."""

    def setup_method(self):
        """Setup test environment."""
        self.fixtures = TestDataFixtures()
        self.cli = ConversionCLI()
        self.model_path = self.fixtures.save_model('identity')
        self.temp_path = self.fixtures.temp_path

    def teardown_method(self):
        """Cleanup test environment."""
        self.fixtures.cleanup()

    def _base_args(self):
        return ['--model', self.model_path, '--device', 'cpu', '--no-progress', '--quiet']

    def test_single_file(self):
        """A single image converts with exit code 0."""
        input_path = self.fixtures.save_image(self.fixtures.get_quadrant_image(32), "in.png")
        output_path = self.temp_path / "out.png"
        report_path = self.temp_path / "report.json"

        exit_code = self.cli.run(self._base_args() + [
            '--input', input_path, '--output', str(output_path),
            '--save-report', str(report_path)
        ])

        assert exit_code == 0
        assert output_path.exists()
        with open(report_path) as f:
            report = json.load(f)
        assert len(report) == 1
        assert report[0]['success'] is True
        assert report[0]['input_file'] == input_path

    def test_existing_output_requires_overwrite(self):
        """An existing output is kept unless --overwrite is given."""
        input_path = self.fixtures.save_image(self.fixtures.get_quadrant_image(32), "in.png")
        output_path = self.temp_path / "exists.png"
        output_path.write_bytes(b"keep me")

        args = self._base_args() + ['--input', input_path, '--output', str(output_path)]
        assert self.cli.run(args) == 1
        assert output_path.read_bytes() == b"keep me"

        assert self.cli.run(args + ['--overwrite']) == 0
        assert output_path.read_bytes() != b"keep me"

    def test_batch_directory(self):
        """Every image in a directory is converted."""
        inputs = self.fixtures.create_image_directory(num_images=3, extension='.png')
        output_dir = self.temp_path / "converted"

        exit_code = self.cli.run(self._base_args() + [
            '--input-dir', str(Path(inputs[0]).parent), '--output-dir', str(output_dir)
        ])

        assert exit_code == 0
        assert sorted(p.name for p in output_dir.iterdir()) == [
            "image_000_anime.png", "image_001_anime.png", "image_002_anime.png"
        ]

    def test_batch_partial_failure(self):
        """One bad file makes the run fail while others still convert."""
        inputs = self.fixtures.create_image_directory(num_images=2, extension='.png')
        input_dir = Path(inputs[0]).parent
        (input_dir / "zz_broken.png").write_bytes(b"not an image")
        output_dir = self.temp_path / "converted"

        exit_code = self.cli.run(self._base_args() + [
            '--input-dir', str(input_dir), '--output-dir', str(output_dir)
        ])

        assert exit_code == 1
        assert (output_dir / "image_000_anime.png").exists()
        assert not (output_dir / "zz_broken_anime.png").exists()

    def test_corrupt_model(self):
        """A corrupt model ends the run with exit code 1."""
        input_path = self.fixtures.save_image(self.fixtures.get_quadrant_image(32), "in.png")
        output_path = self.temp_path / "out.png"

        exit_code = self.cli.run([
            '--model', self.fixtures.save_model('corrupt'), '--device', 'cpu',
            '--no-progress', '--quiet', '--input', input_path, '--output', str(output_path)
        ])

        assert exit_code == 1
        assert not output_path.exists()

    def test_missing_input_dir(self):
        """A missing input directory ends the run with exit code 1."""
        exit_code = self.cli.run(self._base_args() + [
            '--input-dir', str(self.temp_path / "nowhere"),
            '--output-dir', str(self.temp_path / "out")
        ])
        assert exit_code == 1

    def test_save_config(self):
        """--save-config writes the effective configuration."""
        input_path = self.fixtures.save_image(self.fixtures.get_quadrant_image(32), "in.png")
        config_path = self.temp_path / "saved_config.json"

        self.cli.run(self._base_args() + [
            '--input', input_path, '--output', str(self.temp_path / "o.png"),
            '--channel-order', 'rgb', '--save-config', str(config_path)
        ])

        with open(config_path) as f:
            saved = json.load(f)
        assert saved['channel_order'] == 'rgb'
        assert saved['device'] == 'cpu'
