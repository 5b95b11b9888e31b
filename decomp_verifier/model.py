"""
Report model
============
In-memory form of one objdiff report run: overall progress plus one record
per compilation unit, each holding its per-symbol match records.

`Report.from_dict` validates the JSON emitted by `objdiff-cli` and raises
`MalformedReport` naming the first offending field.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from dateutil.parser import isoparse, parse

from .errors import MalformedReport


# =============================================================================
# Field helpers
# =============================================================================

def _get(data: dict, key: str, path: str) -> Any:
    """Look up `key` (camelCase) or its snake_case spelling."""
    if key in data:
        return data[key]
    snake = "".join("_" + c.lower() if c.isupper() else c for c in key)
    if snake in data:
        return data[snake]
    raise MalformedReport(f"missing field '{path}{key}'")


def _number(value: Any, where: str) -> float:
    # bool is an int subclass; JSON true/false is never a number here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedReport(f"'{where}' must be a number, got {type(value).__name__}")
    try:
        value = float(value)
    except OverflowError:
        raise MalformedReport(f"'{where}' is out of range") from None
    if not math.isfinite(value):
        raise MalformedReport(f"'{where}' must be finite")
    return value


def _fraction(value: Any, where: str) -> float:
    value = _number(value, where)
    if not 0.0 <= value <= 1.0:
        raise MalformedReport(f"'{where}' must be between 0 and 1, got {value}")
    return value


def _count(value: Any, where: str) -> int:
    value = _number(value, where)
    if value < 0 or not value.is_integer():
        raise MalformedReport(f"'{where}' must be a non-negative integer, got {value}")
    return int(value)


def _string(value: Any, where: str) -> str:
    if not isinstance(value, str):
        raise MalformedReport(f"'{where}' must be a string, got {type(value).__name__}")
    return value


def _list(value: Any, where: str) -> list:
    if not isinstance(value, list):
        raise MalformedReport(f"'{where}' must be a list, got {type(value).__name__}")
    return value


def _object(value: Any, where: str) -> dict:
    if not isinstance(value, dict):
        raise MalformedReport(f"'{where}' must be an object, got {type(value).__name__}")
    return value


def parse_timestamp(value: Any, where: str = "timestamp") -> datetime:
    """
    Parse a report timestamp into an aware datetime.

    Strings are ISO-8601 first, then any date format dateutil recognises
    (RFC 1123 and friends, as written by JavaScript Date). Numbers are
    milliseconds since the Unix epoch. Naive values are taken as UTC.
    """
    if isinstance(value, str):
        text = value.strip()
        try:
            parsed = isoparse(text)
        except (ValueError, OverflowError):
            try:
                parsed = parse(text)
            except (ValueError, OverflowError):
                raise MalformedReport(f"'{where}' is not a date and time: {value!r}") from None
    else:
        millis = _number(value, where)
        try:
            parsed = datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise MalformedReport(f"'{where}' is out of range: {value!r}") from None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class Symbol:
    name: str
    match_percent: float
    base_size: int
    target_size: int

    @property
    def is_mismatch(self) -> bool:
        return self.match_percent < 1.0

    @classmethod
    def from_dict(cls, data: Any, path: str) -> "Symbol":
        data = _object(data, path)
        prefix = f"{path}."
        return cls(
            name=_string(_get(data, "name", prefix), prefix + "name"),
            match_percent=_fraction(_get(data, "matchPercent", prefix), prefix + "matchPercent"),
            base_size=_count(_get(data, "baseSize", prefix), prefix + "baseSize"),
            target_size=_count(_get(data, "targetSize", prefix), prefix + "targetSize"),
        )


@dataclass
class Unit:
    name: str
    match_percent: float
    symbols: list[Symbol] = field(default_factory=list)

    @property
    def is_mismatch(self) -> bool:
        """Mismatched units get highlighted and can be expanded."""
        return self.match_percent < 1.0

    def mismatched_symbols(self) -> list[Symbol]:
        return [s for s in self.symbols if s.is_mismatch]

    @classmethod
    def from_dict(cls, data: Any, path: str) -> "Unit":
        data = _object(data, path)
        prefix = f"{path}."
        symbols_path = prefix + "symbols"
        symbols = [
            Symbol.from_dict(item, f"{symbols_path}[{i}]")
            for i, item in enumerate(_list(_get(data, "symbols", prefix), symbols_path))
        ]
        return cls(
            name=_string(_get(data, "name", prefix), prefix + "name"),
            match_percent=_fraction(_get(data, "matchPercent", prefix), prefix + "matchPercent"),
            symbols=symbols,
        )


@dataclass
class Report:
    total_progress: float
    matched_objects: int
    total_objects: int
    timestamp: datetime
    units: list[Unit] = field(default_factory=list)

    def get_unit(self, name: str) -> Optional[Unit]:
        for unit in self.units:
            if unit.name == name:
                return unit
        return None

    @property
    def mismatch_count(self) -> int:
        return sum(1 for u in self.units if u.is_mismatch)

    @classmethod
    def from_dict(cls, data: Any) -> "Report":
        """Validate a decoded JSON document and build a Report from it."""
        data = _object(data, "report")

        units = []
        seen: set[str] = set()
        for i, item in enumerate(_list(_get(data, "units", ""), "units")):
            unit = Unit.from_dict(item, f"units[{i}]")
            if unit.name in seen:
                raise MalformedReport(f"duplicate unit name '{unit.name}'")
            seen.add(unit.name)
            units.append(unit)

        matched = _count(_get(data, "matchedObjects", ""), "matchedObjects")
        total = _count(_get(data, "totalObjects", ""), "totalObjects")
        if matched > total:
            raise MalformedReport(f"matchedObjects ({matched}) exceeds totalObjects ({total})")

        return cls(
            total_progress=_fraction(_get(data, "totalProgress", ""), "totalProgress"),
            matched_objects=matched,
            total_objects=total,
            timestamp=parse_timestamp(_get(data, "timestamp", "")),
            units=units,
        )
