"""Custom exceptions used across DeviceTrack."""


class DeviceTrackError(Exception):
    """Base error for the application."""


class ConfigError(DeviceTrackError):
    """Configuration related error."""


class WorkbookReadError(DeviceTrackError):
    """Raised when a workbook cannot be opened or parsed at all."""


class PersistenceError(DeviceTrackError):
    """Raised when the storage stage of an ingestion run fails."""
