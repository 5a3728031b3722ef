"""
Centralized settings module for ClaimRecon.
Single source of truth for thresholds, confidences and legal constants.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from errors import ConfigurationError


def _env_int(name: str, default: str) -> int:
    return int(os.getenv(name, default))


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


class ClaimReconSettings:
    """Centralized configuration for the ClaimRecon pipeline."""

    # Jurisdiction
    DOMESTIC_CURRENCY: str = os.getenv("CLAIMRECON_DOMESTIC_CURRENCY", "GBP")
    SMALL_CLAIMS_LIMIT: float = _env_float("CLAIMRECON_SMALL_CLAIMS_LIMIT", "10000")
    LIMITATION_YEARS: int = _env_int("CLAIMRECON_LIMITATION_YEARS", "6")

    # Pre-action protocol
    LBA_RESPONSE_DAYS: int = _env_int("CLAIMRECON_LBA_RESPONSE_DAYS", "14")
    INITIAL_OVERDUE_DAYS: int = _env_int("CLAIMRECON_INITIAL_OVERDUE_DAYS", "30")

    # Confidence handling (0-100)
    VERIFICATION_THRESHOLD: int = _env_int("CLAIMRECON_VERIFICATION_THRESHOLD", "70")
    INFERRED_COUNTY_CONFIDENCE: int = _env_int("CLAIMRECON_INFERRED_COUNTY_CONFIDENCE", "85")
    INFERRED_TYPE_CONFIDENCE: int = _env_int("CLAIMRECON_INFERRED_TYPE_CONFIDENCE", "70")
    DEFAULT_CONFIDENCE: int = _env_int("CLAIMRECON_DEFAULT_CONFIDENCE", "80")
    DOCUMENT_CONFIDENCE: int = _env_int("CLAIMRECON_DOCUMENT_CONFIDENCE", "85")
    CHAT_CONFIDENCE: int = _env_int("CLAIMRECON_CHAT_CONFIDENCE", "75")
    INTAKE_CONFIDENCE: int = _env_int("CLAIMRECON_INTAKE_CONFIDENCE", "90")

    # Statutory interest (Late Payment of Commercial Debts (Interest) Act 1998)
    BOE_BASE_RATE: float = _env_float("CLAIMRECON_BOE_BASE_RATE", "4.75")
    STATUTORY_INTEREST_ADDITION: float = _env_float("CLAIMRECON_STATUTORY_INTEREST_ADDITION", "8.0")
    B2C_INTEREST_RATE: float = _env_float("CLAIMRECON_B2C_INTEREST_RATE", "8.0")
    DAILY_INTEREST_DIVISOR: int = 365

    # Extraction provider
    EXTRACTION_PROVIDER: str = os.getenv("CLAIMRECON_EXTRACTION_PROVIDER", "callable")

    def __init__(self, **overrides: Any):
        for key, value in overrides.items():
            if not hasattr(type(self), key):
                raise ConfigurationError(f"Unknown setting: {key}")
            current = getattr(type(self), key)
            try:
                setattr(self, key, type(current)(value))
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid value for {key}: {value!r} ({e})") from e

    @classmethod
    def from_yaml(cls, config_path: str = "claimrecon.yaml") -> "ClaimReconSettings":
        """
        Build settings with overrides from a YAML file.

        Keys are matched case-insensitively against the setting names. A missing
        file yields plain defaults.

        Raises:
            ConfigurationError: file is unreadable, not a mapping, or has unknown keys
        """
        path = Path(config_path)
        if not path.exists():
            return cls()
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not read settings file {config_path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Settings file {config_path} must contain a mapping")
        overrides: Dict[str, Any] = {str(k).upper(): v for k, v in raw.items()}
        return cls(**overrides)

    @property
    def late_payment_rate(self) -> float:
        """Statutory B2B rate: base rate plus the fixed addition."""
        return self.BOE_BASE_RATE + self.STATUTORY_INTEREST_ADDITION

    def default_confidence_for(self, source: Optional[str]) -> int:
        """
        Default confidence for an extraction source.

        Args:
            source: ExtractionSource value, or None for the generic fallback

        Returns:
            int: Confidence in the 0-100 range
        """
        return {
            "document_extraction": self.DOCUMENT_CONFIDENCE,
            "chat_extraction": self.CHAT_CONFIDENCE,
            "intake_form": self.INTAKE_CONFIDENCE,
        }.get(source or "", self.DEFAULT_CONFIDENCE)

    def needs_verification(self, confidence: int) -> bool:
        return confidence < self.VERIFICATION_THRESHOLD


# Create singleton instance
settings = ClaimReconSettings()
