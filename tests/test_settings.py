"""
Tests for settings overrides and YAML loading.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from errors import ConfigurationError
from settings import ClaimReconSettings, settings


class TestOverrides:
    """Keyword overrides on a settings instance."""

    def test_override_does_not_touch_singleton(self):
        custom = ClaimReconSettings(LBA_RESPONSE_DAYS=21)
        assert custom.LBA_RESPONSE_DAYS == 21
        assert settings.LBA_RESPONSE_DAYS == ClaimReconSettings.LBA_RESPONSE_DAYS

    def test_values_coerced_to_setting_type(self):
        custom = ClaimReconSettings(SMALL_CLAIMS_LIMIT="25000", VERIFICATION_THRESHOLD="60")
        assert custom.SMALL_CLAIMS_LIMIT == 25000.0
        assert custom.VERIFICATION_THRESHOLD == 60

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError):
            ClaimReconSettings(NOT_A_SETTING=1)

    def test_bad_value(self):
        with pytest.raises(ConfigurationError):
            ClaimReconSettings(LBA_RESPONSE_DAYS="fortnight")

    def test_late_payment_rate(self):
        assert ClaimReconSettings(BOE_BASE_RATE=5.25, STATUTORY_INTEREST_ADDITION=8).late_payment_rate == 13.25

    def test_default_confidence_for(self):
        custom = ClaimReconSettings(DOCUMENT_CONFIDENCE=85, CHAT_CONFIDENCE=75, INTAKE_CONFIDENCE=90,
                                    DEFAULT_CONFIDENCE=80)
        assert custom.default_confidence_for("document_extraction") == 85
        assert custom.default_confidence_for("chat_extraction") == 75
        assert custom.default_confidence_for("intake_form") == 90
        assert custom.default_confidence_for(None) == 80

    def test_needs_verification(self):
        custom = ClaimReconSettings(VERIFICATION_THRESHOLD=70)
        assert custom.needs_verification(69)
        assert not custom.needs_verification(70)


class TestFromYaml:
    """Settings files."""

    def test_missing_file_gives_defaults(self, tmp_path):
        loaded = ClaimReconSettings.from_yaml(str(tmp_path / "absent.yaml"))
        assert loaded.SMALL_CLAIMS_LIMIT == ClaimReconSettings.SMALL_CLAIMS_LIMIT

    def test_lowercase_keys(self, tmp_path):
        path = tmp_path / "claimrecon.yaml"
        path.write_text("small_claims_limit: 25000\nlba_response_days: 21\n", encoding="utf-8")
        loaded = ClaimReconSettings.from_yaml(str(path))
        assert loaded.SMALL_CLAIMS_LIMIT == 25000
        assert loaded.LBA_RESPONSE_DAYS == 21

    def test_empty_file(self, tmp_path):
        path = tmp_path / "claimrecon.yaml"
        path.write_text("", encoding="utf-8")
        assert ClaimReconSettings.from_yaml(str(path)).LIMITATION_YEARS == ClaimReconSettings.LIMITATION_YEARS

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "claimrecon.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            ClaimReconSettings.from_yaml(str(path))

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "claimrecon.yaml"
        path.write_text("colour: blue\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            ClaimReconSettings.from_yaml(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "claimrecon.yaml"
        path.write_text("a: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            ClaimReconSettings.from_yaml(str(path))
