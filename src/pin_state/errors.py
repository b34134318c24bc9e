"""Exceptions raised while validating pin access."""

from __future__ import annotations

from .models import PinMode


class PinStateError(Exception):
    """Base class for every pin-state failure."""


class PinOutOfRange(PinStateError):
    """Pin number outside the hardware capability for an operation class."""

    def __init__(self, pin: int, operation: str):
        self.pin = pin
        self.operation = operation
        super().__init__(f"Pin {pin} does not support {operation}")


class ModeMismatch(PinStateError):
    """Pin addressed with an operation inconsistent with its configured mode."""

    def __init__(self, pin: int, required: PinMode, actual: PinMode):
        self.pin = pin
        self.required = required
        self.actual = actual
        super().__init__(
            f"Pin {pin} is configured as {actual.value}, operation requires {required.value}"
        )


class InvalidThreshold(PinStateError):
    """Noise threshold outside the open interval (0, 100)."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Noise threshold {value!r} must be strictly between 0 and 100")


class UnsupportedPort(PinStateError):
    """Digital port index outside the supported range."""

    def __init__(self, port: int):
        self.port = port
        super().__init__(f"Digital port {port} is not supported")
