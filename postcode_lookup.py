"""
UK postcode utilities: format validation and postcode-area to county lookup.

The area table maps the leading letters of a postcode to its ceremonial or
administrative county. It is a read-only mapping built once at import.
"""

import re
from types import MappingProxyType
from typing import Optional

UK_POSTCODE_REGEX = re.compile(r"^[A-Z]{1,2}\d[A-Z\d]?\s?\d[A-Z]{2}$", re.IGNORECASE)
_AREA_PREFIX = re.compile(r"^([A-Z]{1,2})")

POSTCODE_COUNTY_MAP = MappingProxyType({
    # Greater London
    "E": "Greater London", "EC": "Greater London", "N": "Greater London", "NW": "Greater London",
    "SE": "Greater London", "SW": "Greater London", "W": "Greater London", "WC": "Greater London",

    # South East
    "BN": "East Sussex", "BR": "Greater London", "CR": "Greater London", "CT": "Kent",
    "DA": "Kent", "EN": "Hertfordshire", "GU": "Surrey", "HA": "Greater London",
    "HP": "Buckinghamshire", "IG": "Greater London", "KT": "Surrey", "LU": "Bedfordshire",
    "ME": "Kent", "MK": "Buckinghamshire", "OX": "Oxfordshire", "PO": "Hampshire",
    "RG": "Berkshire", "RH": "Surrey", "RM": "Greater London", "SG": "Hertfordshire",
    "SL": "Berkshire", "SM": "Greater London", "SO": "Hampshire", "SS": "Essex",
    "TN": "Kent", "TW": "Greater London", "UB": "Greater London", "WD": "Hertfordshire",

    # South West
    "BA": "Somerset", "BH": "Dorset", "BS": "Avon", "DT": "Dorset", "EX": "Devon",
    "GL": "Gloucestershire", "PL": "Devon", "SN": "Wiltshire", "SP": "Wiltshire",
    "TA": "Somerset", "TQ": "Devon", "TR": "Cornwall",

    # West Midlands
    "B": "West Midlands", "CV": "West Midlands", "DY": "West Midlands", "HR": "Herefordshire",
    "ST": "Staffordshire", "TF": "Shropshire", "WR": "Worcestershire", "WS": "West Midlands",
    "WV": "West Midlands",

    # East Midlands
    "DE": "Derbyshire", "DN": "South Yorkshire", "LE": "Leicestershire", "LN": "Lincolnshire",
    "NG": "Nottinghamshire", "NN": "Northamptonshire", "PE": "Cambridgeshire",

    # East of England
    "AL": "Hertfordshire", "CB": "Cambridgeshire", "CM": "Essex", "CO": "Essex",
    "IP": "Suffolk", "NR": "Norfolk",

    # Yorkshire & Humber
    "BD": "West Yorkshire", "HD": "West Yorkshire", "HG": "North Yorkshire", "HU": "East Yorkshire",
    "HX": "West Yorkshire", "LS": "West Yorkshire", "S": "South Yorkshire", "WF": "West Yorkshire",
    "YO": "North Yorkshire",

    # North West
    "BB": "Lancashire", "BL": "Greater Manchester", "CA": "Cumbria", "CH": "Cheshire",
    "CW": "Cheshire", "FY": "Lancashire", "L": "Merseyside", "LA": "Cumbria",
    "M": "Greater Manchester", "OL": "Greater Manchester", "PR": "Lancashire",
    "SK": "Cheshire", "WA": "Cheshire", "WN": "Greater Manchester",

    # North East
    "DH": "County Durham", "DL": "County Durham", "NE": "Tyne and Wear", "SR": "Tyne and Wear",
    "TS": "Cleveland",

    # Wales
    "CF": "South Glamorgan", "LD": "Powys", "LL": "Gwynedd", "NP": "Gwent",
    "SA": "West Glamorgan", "SY": "Powys",

    # Scotland (council areas)
    "AB": "Aberdeenshire", "DD": "Angus", "DG": "Dumfries and Galloway",
    "EH": "City of Edinburgh", "FK": "Stirling", "G": "City of Glasgow",
    "IV": "Highland", "KA": "Ayrshire", "KW": "Highland", "KY": "Fife",
    "ML": "South Lanarkshire", "PA": "Renfrewshire", "PH": "Perth and Kinross",
    "TD": "Scottish Borders", "ZE": "Shetland Islands",

    # Northern Ireland
    "BT": "County Antrim",
})


def clean_postcode(postcode: str) -> str:
    """Collapse whitespace, uppercase, and insert the inward-code space when missing."""
    cleaned = re.sub(r"\s+", " ", postcode or "").strip().upper()
    if len(cleaned) >= 5 and " " not in cleaned:
        cleaned = cleaned[:-3] + " " + cleaned[-3:]
    return cleaned


def is_valid_uk_postcode(postcode: str) -> bool:
    if not postcode:
        return False
    return bool(UK_POSTCODE_REGEX.match(postcode.strip()))


def county_from_postcode(postcode: str) -> Optional[str]:
    """
    Look up the county for a UK postcode.

    The two-letter area wins; the single-letter area is only a fallback when no
    two-letter entry exists (e.g. "SW1A" -> SW, "M1" -> M, "SX1" -> S).

    Returns:
        County name, or None when the area is not in the table
    """
    if not postcode:
        return None
    match = _AREA_PREFIX.match(postcode.strip().upper().replace(" ", ""))
    if not match:
        return None
    area = match.group(1)
    if len(area) == 2 and area in POSTCODE_COUNTY_MAP:
        return POSTCODE_COUNTY_MAP[area]
    return POSTCODE_COUNTY_MAP.get(area[0])
