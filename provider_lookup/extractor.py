"""City / county / ZIP extraction from a geocoder display name.

Nominatim display names look like:
    "301 West 2nd Street, Austin, Travis County, Texas, 78701, USA"
    "Foxtrot, 301, West 2nd Street, Warehouse District, Austin, Travis County, Texas, 78701, United States"

This is a heuristic, not an address parser. Segments after the first are run
through an ordered list of rules; the first rule that claims a segment wins.
When a result has no real city segment, a street or neighbourhood can end up
as the city (the second example yields "West 2nd Street"). Gas overrides are
keyed to this exact behaviour, so keep the rule order as is.
"""

import re
from typing import Callable, Dict, List, Optional

from .models import AdministrativeComponents

LOCAL_CITY = "Austin"
LOCAL_COUNTY = "Travis"

_LEADING_ZIP_RE = re.compile(r"^(\d{5})")
_ANY_ZIP_RE = re.compile(r"\b(\d{5})\b")
_COUNTY_SUFFIX_RE = re.compile(r"\s+County$", re.IGNORECASE)
_STATE_ABBR_RE = re.compile(r"^[A-Z]{2}$")
_NUMERIC_RE = re.compile(r"^\d+$")

# Country/state literals that are never a city
_IGNORED_LITERALS = {"USA", "United States", "Texas"}

# A rule inspects one segment and the components found so far; it returns
# True when it claims the segment, False to let the next rule look at it.
Rule = Callable[[str, Dict[str, Optional[str]]], bool]


def _zip_rule(segment: str, found: Dict[str, Optional[str]]) -> bool:
    m = _LEADING_ZIP_RE.match(segment)
    if not m:
        return False
    if found["zip_code"] is None:
        found["zip_code"] = m.group(1)
    return True


def _county_rule(segment: str, found: Dict[str, Optional[str]]) -> bool:
    if "county" not in segment.lower():
        return False
    found["county"] = _COUNTY_SUFFIX_RE.sub("", segment)
    return True


def _ignored_rule(segment: str, found: Dict[str, Optional[str]]) -> bool:
    return bool(_STATE_ABBR_RE.match(segment)) or segment in _IGNORED_LITERALS


def _city_rule(segment: str, found: Dict[str, Optional[str]]) -> bool:
    if found["city"] is not None:
        return False
    if _NUMERIC_RE.match(segment) or "district" in segment.lower():
        return False
    found["city"] = segment
    return True


RULES: List[Rule] = [_zip_rule, _county_rule, _ignored_rule, _city_rule]


def extract_components(display_name: str,
                       local_city: str = LOCAL_CITY,
                       local_county: str = LOCAL_COUNTY) -> AdministrativeComponents:
    """Best-effort city, county and ZIP from a display name. Pure, never raises."""
    if not display_name or not display_name.strip():
        return AdministrativeComponents()

    found: Dict[str, Optional[str]] = {"city": None, "county": None, "zip_code": None}
    segments = [s.strip() for s in display_name.split(",")]

    # Segment 0 is the house number / street / POI name
    for segment in segments[1:]:
        if not segment:
            continue
        for rule in RULES:
            if rule(segment, found):
                break

    lowered = display_name.lower()
    if found["city"] is None and local_city.lower() in lowered:
        found["city"] = local_city
    if found["county"] is None and local_county.lower() in lowered:
        found["county"] = local_county

    if found["zip_code"] is None:
        m = _ANY_ZIP_RE.search(display_name)
        if m:
            found["zip_code"] = m.group(1)

    return AdministrativeComponents(**found)
