"""Controller configuration model."""

from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, Field, field_validator

from hardware_interface import ArduinoConfig
from pin_state import DEFAULT_THRESHOLD, PinMode, pin_mode_from_name


class ControllerConfig(BaseModel):
    """
    Everything needed to open a controller and set up its pins.

    ``pins`` maps pin numbers to mode names as written in a config file;
    unknown names become ``PinMode.OFF`` and the pin is left unconfigured.
    """
    arduino: ArduinoConfig = Field(default_factory=ArduinoConfig)

    threshold: int = Field(DEFAULT_THRESHOLD, gt=0, lt=100, description="Analog noise threshold")
    log_mode: bool = False

    pins: Dict[int, PinMode] = Field(default_factory=dict)

    @field_validator("pins", mode="before")
    @classmethod
    def parse_pin_modes(cls, value):
        """Map mode names onto PinMode."""
        if not value:
            return {}
        return {int(pin): pin_mode_from_name(mode) for pin, mode in dict(value).items()}
