"""
segments.py — Revenue segment / geography aggregator.

Purpose:
- Turn FMP's product and geographic segmentation payloads into a flat list
  of {name, value, percentage} slices for the dashboard pie charts.

The provider's nesting differs across companies and API versions, so the
payload is walked as generic JSON:

    {"Segments": {...}} / {"Product": {...}} / {"Geographical": {...}}
        → numeric leaves of the container are folded into name → sum
    {"2024-09-28": {...}}
        → a single date-keyed wrapper is visited as its payload
    any other object
        → its direct numeric children are folded (except `date` and *period*
          keys) and nested objects/arrays are visited

Containers are folded once and never visited again, so a value is counted at
most once. Nodes deeper than `max_depth` are ignored.

This module does NOT:
- Call FMP (routes fetch and cache the payload first).
- Pick the reporting period; `latest_period()` does that before aggregation.
"""

from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional

from finhub.core.config import settings

CONTAINER_KEYS = (
    "Segments",
    "Product",
    "Products",
    "segments",
    "product",
    "Geographical",
    "geographic",
)

_DATE_KEY = re.compile(r"\d{4}-\d{2}-\d{2}")
_PERIOD_KEY = re.compile(r"period", re.IGNORECASE)
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z]{2})(?=[A-Z])")

_REGION_NOISE = re.compile(
    r"\bGeographical\b|\bGeographic\b|\bGeography\b|\bRegions?\b|\bAreas?\b",
    re.IGNORECASE,
)
_SEGMENT_NOISE = re.compile(r"\bSegment\b", re.IGNORECASE)

REGION_NAMES: Dict[str, str] = {
    "UNITED STATES": "US",
    "UNITED STATES OF AMERICA": "US",
    "US": "US",
    "U.S.": "US",
    "UNITED KINGDOM": "UK",
    "U.K.": "UK",
    "JAPA": "Japan",
    "JAPAN": "Japan",
    "GREATER CHINA": "Greater China",
    "REST OF ASIA PACIFIC": "Rest of Asia Pacific",
    "ASIA PACIFIC": "Asia Pacific",
    "APAC": "APAC",
    "EMEA": "EMEA",
    "EUROPE": "Europe",
    "AMERICAS": "Americas",
    "NORTH AMERICA": "North America",
    "SOUTH AMERICA": "South America",
    "INTERNATIONAL MARKETS": "International",
    "INTERNATIONAL": "International",
    "NON-US": "Non-US",
    "OUTSIDE US & UK": "Outside US & UK",
    "COUNTRIES OTHER THAN US AND UNITED KINGDOM": "Outside US & UK",
}

REGION_ACRONYMS = {"US", "UK", "EMEA", "APAC", "UAE"}

Normalizer = Callable[[str], str]


@dataclass(frozen=True)
class SegmentEntry:
    name: str
    value: float
    percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# -----------------------------------------------------------------------------
# Name normalisation
# -----------------------------------------------------------------------------

def normalize_segment_name(key: str) -> str:
    """
    Readable label for a product segment key.

    "Wearables_Home" → "Wearables Home", "WearablesHome" → "Wearables Home",
    "iPhone" → "iPhone".
    """
    name = key.replace("_", " ")
    name = _CAMEL_BOUNDARY.sub(" ", name)
    return " ".join(name.split())


def normalize_region_name(key: str) -> str:
    """Consistent label for a geographic segment key ("UNITED STATES" → "US")."""
    if not key:
        return "Other"

    cleaned = key.replace("_", " ")
    cleaned = _REGION_NOISE.sub("", cleaned)
    cleaned = _SEGMENT_NOISE.sub("", cleaned)
    cleaned = " ".join(cleaned.split())

    explicit = REGION_NAMES.get(cleaned.upper())
    if explicit:
        return explicit

    parts = []
    for part in cleaned.split(" "):
        letters = re.sub(r"[^A-Za-z\-&]", "", part)
        if letters.upper() in REGION_ACRONYMS:
            parts.append(letters.upper())
        elif letters.lower() == "non-us":
            parts.append("Non-US")
        elif not letters:
            parts.append(part)
        else:
            parts.append(letters[0].upper() + letters[1:].lower())

    titled = " ".join(parts).strip()
    return titled or "Other"


# -----------------------------------------------------------------------------
# Aggregation
# -----------------------------------------------------------------------------

def numeric_value(value: Any) -> Optional[float]:
    """Finite float for numbers and numeric strings, else None. Booleans are not numbers."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _is_excluded_key(key: str) -> bool:
    return key == "date" or bool(_PERIOD_KEY.search(key))


def _fold_leaf(key: str, value: Any, totals: Dict[str, float], normalizer: Normalizer) -> None:
    if _is_excluded_key(key):
        return
    number = numeric_value(value)
    if number is None:
        return
    label = normalizer(key)
    totals[label] = totals.get(label, 0.0) + number


def _fold_container(container: Dict[str, Any], totals: Dict[str, float], normalizer: Normalizer) -> None:
    for key, value in container.items():
        _fold_leaf(str(key), value, totals, normalizer)


def _visit(
    node: Any,
    depth: int,
    totals: Dict[str, float],
    normalizer: Normalizer,
    max_depth: int,
) -> None:
    if depth > max_depth:
        return

    if isinstance(node, list):
        for item in node:
            _visit(item, depth + 1, totals, normalizer, max_depth)
        return

    if not isinstance(node, dict):
        return

    keys = list(node.keys())
    if len(keys) == 1 and _DATE_KEY.search(str(keys[0])) and isinstance(node[keys[0]], (dict, list)):
        _visit(node[keys[0]], depth + 1, totals, normalizer, max_depth)
        return

    folded = set()
    for key in CONTAINER_KEYS:
        container = node.get(key)
        if isinstance(container, dict):
            _fold_container(container, totals, normalizer)
            folded.add(key)

    for key, value in node.items():
        if key in folded:
            continue
        if isinstance(value, (dict, list)):
            _visit(value, depth + 1, totals, normalizer, max_depth)
        else:
            _fold_leaf(str(key), value, totals, normalizer)


def aggregate(
    payload: Any,
    normalizer: Normalizer = normalize_segment_name,
    max_depth: Optional[int] = None,
) -> List[SegmentEntry]:
    """
    Sum segment values by normalised name and compute percentage shares.

    Strictly positive sums are preferred; when there are none every entry
    is used. Returns [] when the chosen total is zero. Output is sorted by
    value, largest first.
    """
    if max_depth is None:
        max_depth = settings.SEGMENT_MAX_DEPTH

    totals: Dict[str, float] = {}
    _visit(payload, 0, totals, normalizer, max_depth)

    positives = [(name, value) for name, value in totals.items() if value > 0]
    chosen = positives or list(totals.items())

    total = sum(value for _, value in chosen)
    if total == 0:
        return []

    entries = [
        SegmentEntry(name=name, value=value, percentage=100 * value / total)
        for name, value in chosen
    ]
    entries.sort(key=lambda entry: entry.value, reverse=True)
    return entries


def latest_period(payload: Any) -> Any:
    """
    Most recent period of a segmentation response.

    FMP returns a list of dated periods, newest first; only the first one is
    aggregated so fiscal years are not summed together. Anything else is
    returned unchanged.
    """
    if isinstance(payload, list) and payload:
        return payload[0]
    return payload
