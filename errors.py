# errors.py
"""
Exception taxonomy for ClaimRecon.

Only structural problems surface as exceptions. Field-level problems never raise:
the offending field is dropped and the pipeline continues with less information.
"""


class ClaimReconError(Exception):
    """Base class for all ClaimRecon errors."""


class ExtractionValidationError(ClaimReconError, ValueError):
    """Raw extraction payload is structurally invalid (not an object, unparsable JSON)."""

    def __init__(self, message: str, payload_type: str | None = None):
        super().__init__(message)
        self.payload_type = payload_type


class ConfigurationError(ClaimReconError):
    """Settings file or provider configuration could not be loaded."""
