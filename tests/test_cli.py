"""Smoke tests for the CLI.

These tests verify the command line surface without touching real
devices, the network or external tools.
"""

import os
from pathlib import Path
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from sdflash import __version__
from sdflash.cli import app
from sdflash.errors import DownloadError, ImageNotFoundError
from sdflash.flash.service import Stage
from sdflash.types import FlashOptions

runner = CliRunner()


def fake_pipeline(success=True, side_effect=None):
    pipeline = MagicMock()
    pipeline.stage = None
    pipeline.device = None
    if side_effect is not None:
        pipeline.run.side_effect = side_effect
    else:
        pipeline.run.return_value = MagicMock(success=success)
    return pipeline


class TestCLIHelp:
    """Test usage, help and version handling."""

    def test_help_exits_one(self) -> None:
        """--help prints usage and fails."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 1
        assert "Usage:" in result.output

    def test_short_help_exits_one(self) -> None:
        result = runner.invoke(app, ["-h"])
        assert result.exit_code == 1
        assert "--hostname" in result.output

    def test_missing_image_shows_usage(self) -> None:
        """Without IMAGE the usage text is shown with a failure status."""
        with patch("sdflash.cli.build_pipeline") as mock_build:
            result = runner.invoke(app, [])

        assert result.exit_code == 1
        assert "Usage:" in result.output
        mock_build.assert_not_called()

    def test_unknown_option_exits_one(self) -> None:
        """Usage errors share the general failure status."""
        with patch("sdflash.cli.build_pipeline") as mock_build:
            result = runner.invoke(app, ["--bogus", "pi.img"])

        assert result.exit_code == 1
        assert "--bogus" in result.output
        mock_build.assert_not_called()

    def test_option_without_value_exits_one(self) -> None:
        with patch("sdflash.cli.build_pipeline") as mock_build:
            result = runner.invoke(app, ["pi.img", "-c"])

        assert result.exit_code == 1
        mock_build.assert_not_called()

    def test_version_flag(self) -> None:
        """CLI --version should print version and exit 0."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_short_version_flag(self) -> None:
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestCLIOptions:
    """Test translation of flags into FlashOptions."""

    def test_all_flags(self) -> None:
        pipeline = fake_pipeline()
        with patch("sdflash.cli.build_pipeline", return_value=pipeline):
            result = runner.invoke(
                app,
                [
                    "-c",
                    "wifi.yml",
                    "-C",
                    "boot.txt",
                    "-n",
                    "black-pearl",
                    "-s",
                    "office",
                    "-p",
                    "hunter2",
                    "-d",
                    "/dev/sdb",
                    "https://example.com/hypriot.img.zip",
                ],
            )

        assert result.exit_code == 0
        options = pipeline.run.call_args.args[0]
        assert isinstance(options, FlashOptions)
        assert options.image == "https://example.com/hypriot.img.zip"
        assert options.device == "/dev/sdb"
        assert options.overlay.config_file == Path("wifi.yml")
        assert options.overlay.boot_config_file == Path("boot.txt")
        assert options.edits.hostname == "black-pearl"
        assert options.edits.ssid == "office"
        assert options.edits.password == "hunter2"

    def test_long_flags(self) -> None:
        pipeline = fake_pipeline()
        with patch("sdflash.cli.build_pipeline", return_value=pipeline):
            result = runner.invoke(
                app, ["--hostname", "pi", "--device", "/dev/mmcblk0", "pi.img"]
            )

        assert result.exit_code == 0
        options = pipeline.run.call_args.args[0]
        assert options.edits.hostname == "pi"
        assert options.edits.ssid is None
        assert options.overlay.config_file is None

    def test_image_only(self) -> None:
        pipeline = fake_pipeline()
        with patch("sdflash.cli.build_pipeline", return_value=pipeline):
            result = runner.invoke(app, ["pi.img"])

        assert result.exit_code == 0
        options = pipeline.run.call_args.args[0]
        assert options.device is None
        assert options.edits.is_empty()


class TestCLIExitCodes:
    """Test mapping of failures to exit statuses."""

    def test_unsupported_platform(self, tmp_path) -> None:
        image = tmp_path / "pi.img"
        image.write_bytes(b"IMG")
        with patch("sdflash.flash.host.platform.system", return_value="Windows"):
            result = runner.invoke(app, [str(image)])

        assert result.exit_code == 11
        assert "Windows" in result.output

    def test_image_not_found(self, tmp_path) -> None:
        with patch("sdflash.flash.host.platform.system", return_value="Linux"):
            result = runner.invoke(app, [str(tmp_path / "nope.img")])

        assert result.exit_code == 10
        assert "Image not found" in result.output

    def test_unwritable_cache_dir(self, tmp_path) -> None:
        """A cache directory that cannot be created is reported, not raised."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        env = {"SDFLASH_CACHE_DIR": str(blocker / "cache")}
        with patch.dict(os.environ, env):
            with patch("sdflash.flash.host.platform.system", return_value="Linux"):
                result = runner.invoke(app, ["https://example.com/pi.img"])

        assert result.exit_code == 1
        assert not isinstance(result.exception, OSError)
        assert "Cannot write downloaded image" in result.output

    def test_download_error(self) -> None:
        pipeline = fake_pipeline(
            side_effect=DownloadError("HTTP error 404 downloading pi.img", code="http_error")
        )
        with patch("sdflash.cli.build_pipeline", return_value=pipeline):
            result = runner.invoke(app, ["https://example.com/pi.img"])

        assert result.exit_code == 1
        assert "HTTP error 404" in result.output

    def test_not_found_from_pipeline(self) -> None:
        pipeline = fake_pipeline(side_effect=ImageNotFoundError("/x/pi.img"))
        with patch("sdflash.cli.build_pipeline", return_value=pipeline):
            result = runner.invoke(app, ["/x/pi.img"])

        assert result.exit_code == 10

    def test_unsuccessful_finalize(self) -> None:
        with patch(
            "sdflash.cli.build_pipeline", return_value=fake_pipeline(success=False)
        ):
            result = runner.invoke(app, ["pi.img"])

        assert result.exit_code == 1

    def test_interrupted(self) -> None:
        pipeline = fake_pipeline(side_effect=KeyboardInterrupt())
        pipeline.stage = Stage.WRITE
        pipeline.device = "/dev/sdb"
        with patch("sdflash.cli.build_pipeline", return_value=pipeline):
            result = runner.invoke(app, ["pi.img"])

        assert result.exit_code == 130
        assert "Interrupted during write" in result.output
        assert "/dev/sdb" in result.output
