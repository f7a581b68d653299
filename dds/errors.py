"""Error types raised by the device scaler."""

from __future__ import annotations

from typing import Optional


class DeviceScalerError(Exception):
    """Base exception for all device scaler errors."""

    pass


class InventoryReadError(DeviceScalerError):
    """Raised when listing or reading a cluster object fails."""

    def __init__(self, what: str, cause: Optional[Exception] = None):
        self.what = what
        self.cause = cause
        message = f"failed to read {what}"
        if cause is not None:
            message += f": {cause.__class__.__name__}: {cause}"
        super().__init__(message)


class InventoryWriteError(DeviceScalerError):
    """Raised when updating a cluster object fails."""

    def __init__(self, what: str, cause: Optional[Exception] = None):
        self.what = what
        self.cause = cause
        message = f"failed to update {what}"
        if cause is not None:
            message += f": {cause.__class__.__name__}: {cause}"
        super().__init__(message)


class ConfigError(DeviceScalerError):
    """Raised when the device compatibility config is missing or malformed."""

    pass
