# party_rules.py
"""
Party classification and the statutory money rules that depend on it.

Sole traders are businesses for every rate decision here: the Late Payment of
Commercial Debts (Interest) Act 1998 applies whenever both sides trade.
"""

import re
from datetime import date
from typing import NamedTuple, Optional, Union

from schemas import PartyType
from settings import settings

PartyTypeLike = Union[PartyType, str, None]

COMPANY_NAME_RE = re.compile(
    r"\b(ltd|limited|plc|llp|lp|inc|corp|corporation)\b\.?|\btrading as\b|\bt/a\b",
    re.IGNORECASE,
)

# Money claim issue fees: (upper bound inclusive, fee)
COURT_FEE_BANDS = (
    (300.0, 35.0),
    (500.0, 50.0),
    (1000.0, 70.0),
    (1500.0, 80.0),
    (3000.0, 115.0),
    (5000.0, 205.0),
    (10000.0, 455.0),
)
COURT_FEE_PERCENT = 0.05
COURT_FEE_CAP = 10000.0


def parse_party_type(value: PartyTypeLike) -> Optional[PartyType]:
    """Accept enum values and display names ("Sole Trader", "sole-trader"); anything else is None."""
    if isinstance(value, PartyType):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    key = re.sub(r"[-\s]+", "_", value.strip().lower())
    try:
        return PartyType(key)
    except ValueError:
        return None


def infer_party_type(name: Optional[str], company_number: Optional[str] = None) -> PartyType:
    """Company number or a company-style name means business; otherwise individual."""
    if company_number and str(company_number).strip():
        return PartyType.BUSINESS
    if name and COMPANY_NAME_RE.search(name):
        return PartyType.BUSINESS
    return PartyType.INDIVIDUAL


def is_business(party_type: PartyTypeLike) -> bool:
    return parse_party_type(party_type) in (PartyType.BUSINESS, PartyType.SOLE_TRADER)


def is_individual(party_type: PartyTypeLike) -> bool:
    parsed = parse_party_type(party_type)
    return parsed is None or parsed == PartyType.INDIVIDUAL


def is_b2b(claimant_type: PartyTypeLike, defendant_type: PartyTypeLike) -> bool:
    return is_business(claimant_type) and is_business(defendant_type)


def interest_act(b2b: bool) -> str:
    return ("the Late Payment of Commercial Debts (Interest) Act 1998" if b2b
            else "section 69 of the County Courts Act 1984")


def interest_act_short(b2b: bool) -> str:
    return "Late Payment Act 1998" if b2b else "County Courts Act 1984 s.69"


def statutory_interest_rate(claimant_type: PartyTypeLike, defendant_type: PartyTypeLike, config=None) -> float:
    """Annual rate in percent: base rate + 8 for B2B, flat 8 otherwise."""
    config = config or settings
    if is_b2b(claimant_type, defendant_type):
        return config.late_payment_rate
    return config.B2C_INTEREST_RATE


class InterestCalculation(NamedTuple):
    days_overdue: int
    annual_rate: float
    daily_rate: float
    total_interest: float


def calculate_interest(
    amount: float,
    due_date: Union[str, date, None],
    claimant_type: PartyTypeLike,
    defendant_type: PartyTypeLike,
    as_of: Optional[date] = None,
    config=None,
) -> InterestCalculation:
    """
    Simple statutory interest on an overdue amount.

    Args:
        amount: principal in the claim currency
        due_date: ISO date string or date; None means nothing is overdue yet
        as_of: calculation date, today when omitted

    Returns:
        InterestCalculation with daily_rate and total_interest rounded to pence
    """
    config = config or settings
    annual_rate = statutory_interest_rate(claimant_type, defendant_type, config)
    daily = (amount or 0.0) * annual_rate / 100 / config.DAILY_INTEREST_DIVISOR

    days_overdue = 0
    if due_date:
        due = date.fromisoformat(due_date) if isinstance(due_date, str) else due_date
        days_overdue = max(0, ((as_of or date.today()) - due).days)

    return InterestCalculation(
        days_overdue=days_overdue,
        annual_rate=annual_rate,
        daily_rate=round(daily, 2),
        total_interest=round(daily * days_overdue, 2),
    )


def calculate_compensation(amount: float, claimant_type: PartyTypeLike, defendant_type: PartyTypeLike) -> float:
    """Fixed late-payment compensation; only B2B debts qualify."""
    if not is_b2b(claimant_type, defendant_type):
        return 0.0
    if amount < 1000:
        return 40.0
    if amount < 10000:
        return 70.0
    return 100.0


def calculate_court_fee(amount: float) -> float:
    for upper, fee in COURT_FEE_BANDS:
        if amount <= upper:
            return fee
    return min(round(amount * COURT_FEE_PERCENT, 2), COURT_FEE_CAP)


def lba_response_period_days(defendant_type: PartyTypeLike, config=None) -> int:
    """Pre-action protocol response window: 30 days for individuals, the standard window otherwise."""
    config = config or settings
    return 30 if is_individual(defendant_type) else config.LBA_RESPONSE_DAYS
