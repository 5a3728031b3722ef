"""
Tests for party classification and statutory money rules.
"""

import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from party_rules import (
    calculate_compensation,
    calculate_court_fee,
    calculate_interest,
    infer_party_type,
    interest_act,
    interest_act_short,
    is_b2b,
    is_business,
    is_individual,
    lba_response_period_days,
    parse_party_type,
    statutory_interest_rate,
)
from schemas import PartyType
from settings import ClaimReconSettings

CONFIG = ClaimReconSettings(BOE_BASE_RATE=4.75, STATUTORY_INTEREST_ADDITION=8.0,
                            B2C_INTEREST_RATE=8.0, LBA_RESPONSE_DAYS=14)


class TestClassification:
    """Sole traders are businesses for every rate decision."""

    def test_parse_display_names(self):
        assert parse_party_type("Sole Trader") == PartyType.SOLE_TRADER
        assert parse_party_type("sole-trader") == PartyType.SOLE_TRADER
        assert parse_party_type("Business") == PartyType.BUSINESS
        assert parse_party_type("alien") is None
        assert parse_party_type(None) is None

    def test_is_business(self):
        assert is_business("business")
        assert is_business(PartyType.SOLE_TRADER)
        assert not is_business("individual")
        assert not is_business(None)

    def test_absent_type_is_individual(self):
        assert is_individual(None)
        assert is_individual("individual")
        assert not is_individual("sole_trader")

    def test_b2b_requires_both(self):
        assert is_b2b("business", "sole_trader")
        assert not is_b2b("business", "individual")
        assert not is_b2b(None, "business")

    def test_acts(self):
        assert "Late Payment" in interest_act(True)
        assert "County Courts Act 1984" in interest_act(False)
        assert interest_act_short(True) == "Late Payment Act 1998"
        assert interest_act_short(False) == "County Courts Act 1984 s.69"


class TestInferPartyType:
    """Company markers in names."""

    @pytest.mark.parametrize("name", [
        "Acme Ltd", "ACME LIMITED", "Big Co plc", "Partners LLP", "Widgets Inc.",
        "Mega Corp", "John Smith trading as Smith Plumbing", "J Smith t/a Smith Plumbing",
    ])
    def test_business_names(self, name):
        assert infer_party_type(name) == PartyType.BUSINESS

    @pytest.mark.parametrize("name", ["Jane Smith", "Vince Carter", "Dr Limbo Jones"])
    def test_individual_names(self, name):
        assert infer_party_type(name) == PartyType.INDIVIDUAL

    def test_company_number(self):
        assert infer_party_type("Jane Smith", "12345678") == PartyType.BUSINESS
        assert infer_party_type("Jane Smith", "   ") == PartyType.INDIVIDUAL


class TestInterest:
    """Simple statutory interest."""

    def test_rates(self):
        assert statutory_interest_rate("business", "business", CONFIG) == 12.75
        assert statutory_interest_rate("business", "individual", CONFIG) == 8.0

    def test_b2b_interest(self):
        calc = calculate_interest(1000, "2024-01-01", "business", "business",
                                  as_of=date(2024, 1, 31), config=CONFIG)
        assert calc.days_overdue == 30
        assert calc.annual_rate == 12.75
        assert calc.daily_rate == 0.35
        assert calc.total_interest == 10.48

    def test_b2c_interest(self):
        calc = calculate_interest(1000, date(2024, 1, 1), "business", "individual",
                                  as_of=date(2024, 1, 31), config=CONFIG)
        assert calc.annual_rate == 8.0
        assert calc.daily_rate == 0.22
        assert calc.total_interest == 6.58

    def test_not_yet_due(self):
        calc = calculate_interest(1000, "2024-02-01", "business", "business",
                                  as_of=date(2024, 1, 31), config=CONFIG)
        assert calc.days_overdue == 0
        assert calc.total_interest == 0.0

    def test_no_due_date(self):
        calc = calculate_interest(1000, None, "business", "business", as_of=date(2024, 1, 31), config=CONFIG)
        assert calc.days_overdue == 0


class TestFixedAmounts:
    """Compensation bands, court fees and response periods."""

    @pytest.mark.parametrize("amount,expected", [(500, 40.0), (999.99, 40.0), (1000, 70.0),
                                                 (9999, 70.0), (10000, 100.0)])
    def test_compensation_bands(self, amount, expected):
        assert calculate_compensation(amount, "business", "sole_trader") == expected

    def test_no_compensation_for_consumers(self):
        assert calculate_compensation(5000, "business", "individual") == 0.0

    @pytest.mark.parametrize("amount,expected", [
        (100, 35.0), (300, 35.0), (300.01, 50.0), (1000, 70.0), (1500, 80.0),
        (3000, 115.0), (5000, 205.0), (10000, 455.0), (20000, 1000.0), (300000, 10000.0),
    ])
    def test_court_fees(self, amount, expected):
        assert calculate_court_fee(amount) == expected

    def test_response_period(self):
        assert lba_response_period_days("individual", CONFIG) == 30
        assert lba_response_period_days(None, CONFIG) == 30
        assert lba_response_period_days("business", CONFIG) == 14
