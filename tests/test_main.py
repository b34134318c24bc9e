"""
Tests for the command-line monitor.
"""

import argparse
from unittest.mock import patch

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import main
from pin_state import PinMode


class TestArguments:
    """Tests for argument parsing and config merging."""

    def test_parse_pin_argument(self):
        assert main.parse_pin_argument("4=DigitalInput") == (4, "DigitalInput")

    @pytest.mark.parametrize("text", ["4", "4=", "x=DigitalInput"])
    def test_parse_pin_argument_invalid(self, text):
        with pytest.raises(argparse.ArgumentTypeError):
            main.parse_pin_argument(text)

    def test_defaults_without_config(self):
        args = main.create_parser().parse_args([])
        config = main.build_config(args)
        assert config.arduino.port == "auto"
        assert config.threshold == 10
        assert config.pins == {}

    def test_load_config(self, config_file):
        config = main.load_config(config_file)
        assert config.threshold == 20
        assert config.arduino.port == "/dev/ttyACM0"
        assert config.pins == {4: PinMode.DIGITAL_INPUT, 11: PinMode.ANALOG_OUTPUT}

    def test_missing_config_uses_defaults(self, tmp_path):
        config = main.load_config(tmp_path / "missing.yaml")
        assert config.arduino.port == "auto"

    def test_command_line_overrides_file(self, config_file):
        args = main.create_parser().parse_args([
            "--config", str(config_file),
            "--port", "COM3",
            "--threshold", "30",
            "--pin", "4=AnalogOutput",
            "--pin", "0=AnalogInput",
            "--verbose",
        ])
        config = main.build_config(args)
        assert config.arduino.port == "COM3"
        assert config.threshold == 30
        assert config.log_mode is True
        assert config.pins[4] == PinMode.ANALOG_OUTPUT
        assert config.pins[0] == PinMode.ANALOG_INPUT
        assert config.pins[11] == PinMode.ANALOG_OUTPUT


class TestMain:
    """Tests for the entry point paths that do not open a board."""

    def test_list_ports(self, capsys):
        ports = [{"device": "/dev/ttyACM0", "description": "Arduino Uno", "manufacturer": "Arduino"}]
        with patch.object(main.SerialManager, "list_available_ports", return_value=ports):
            assert main.main(["--list-ports"]) == 0
        assert "/dev/ttyACM0" in capsys.readouterr().out

    def test_upload_without_firmware(self):
        with patch.object(main, "SketchUploader") as uploader:
            assert main.main(["--upload"]) == 1
        uploader.assert_not_called()

    @pytest.mark.parametrize("threshold", ["0", "100"])
    def test_invalid_threshold_rejected(self, threshold):
        with patch.object(main.Arduino, "from_config") as from_config:
            assert main.main(["--port", "/dev/null", "--threshold", threshold]) == 1
        from_config.assert_not_called()

    def test_connect_failure(self):
        with patch.object(main.Arduino, "from_config", side_effect=ConnectionError("no board")):
            assert main.main(["--port", "/dev/null"]) == 1


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "board.yaml"
    path.write_text(
        "threshold: 20\n"
        "arduino:\n"
        "  port: /dev/ttyACM0\n"
        "pins:\n"
        "  4: DigitalInput\n"
        "  11: AnalogOutput\n"
    )
    return path


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
