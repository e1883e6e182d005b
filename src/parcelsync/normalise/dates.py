"""Locale-tolerant date parsing for carrier timelines.

Carriers and merchant pages report dates as ISO-8601, as Spanish or English
natural language ("miércoles, 18 de febrero 5:14 PM", "December 28"), or as
day-first numeric dates ("16/01/2026 12:55"). Patterns are tried in a fixed
order and the first one that yields a valid date wins.

Texts without a year get the current year; if that puts the date more than
24 hours in the future the event must have happened last year (a timeline
parsed in early January that still shows "28 de diciembre").
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo

FUTURE_TOLERANCE = timedelta(hours=24)

ES_MONTHS = {
    "enero": 1, "ene": 1,
    "febrero": 2, "feb": 2,
    "marzo": 3, "mar": 3,
    "abril": 4, "abr": 4,
    "mayo": 5, "may": 5,
    "junio": 6, "jun": 6,
    "julio": 7, "jul": 7,
    "agosto": 8, "ago": 8,
    "septiembre": 9, "setiembre": 9, "sept": 9, "sep": 9,
    "octubre": 10, "oct": 10,
    "noviembre": 11, "nov": 11,
    "diciembre": 12, "dic": 12,
}

EN_MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sept": 9, "sep": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

ES_WEEKDAYS = frozenset({
    "lunes", "martes", "miércoles", "miercoles", "jueves", "viernes",
    "sábado", "sabado", "domingo", "lun", "mar", "mié", "mie", "jue", "vie",
    "sáb", "sab", "dom",
})

EN_WEEKDAYS = frozenset({
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "mon", "tue", "tues", "wed", "thu", "thur", "thurs", "fri", "sat", "sun",
})

_ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_MERIDIEM_RE = re.compile(r"(?<=\d)\s*([ap])\.?\s?m\.?(?!\w)", re.IGNORECASE)

_TIME = (
    r"(?:,?\s+(?:a\s+las\s+|at\s+)?"
    r"(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?"
    r"(?:\s*(?P<ampm>[ap])\.?m\.?)?)?"
)
_WEEKDAY = r"(?:(?P<weekday>[a-záéíóú]+)\.?,?\s+)?"

_ES_RE = re.compile(
    r"^" + _WEEKDAY
    + r"(?P<day>\d{1,2})\s+de\s+(?P<month>[a-záéíóú]+)\.?"
    + r"(?:\s+(?:de\s+|del\s+)?(?P<year>\d{4}))?"
    + _TIME + r"$"
)
_EN_MONTH_FIRST_RE = re.compile(
    r"^" + _WEEKDAY
    + r"(?P<month>[a-z]+)\.?\s+(?P<day>\d{1,2})(?:st|nd|rd|th)?"
    + r"(?:,?\s+(?P<year>\d{4}))?"
    + _TIME + r"$"
)
_EN_DAY_FIRST_RE = re.compile(
    r"^" + _WEEKDAY
    + r"(?P<day>\d{1,2})(?:st|nd|rd|th)?\s+(?:of\s+)?(?P<month>[a-z]+)\.?"
    + r"(?:,?\s+(?P<year>\d{4}))?"
    + _TIME + r"$"
)
_NUMERIC_RE = re.compile(
    r"^(?P<day>\d{1,2})[/-](?P<month>\d{1,2})[/-](?P<year>\d{4})" + _TIME + r"$"
)

_RELATIVE_DAYS = {"hoy": 0, "today": 0, "mañana": 1, "manana": 1, "tomorrow": 1}
_ARRIVAL_PREFIX_RE = re.compile(
    r"^(?:llega|llegará|llegara|entrega estimada|fecha estimada|arriving|arrives|"
    r"expected|estimated delivery)[:\s]+(?:el\s+|on\s+|by\s+)?",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class _Pattern:
    locale: str
    regex: re.Pattern[str]
    months: dict[str, int] | None
    weekdays: frozenset[str]
    prepare: Callable[[str], str]


def _prepare_es(text: str) -> str:
    # "5:14 PM" and "5:14 p. m." both become "5:14 p.m."
    return _MERIDIEM_RE.sub(r" \1.m.", text).lower()


def _prepare_en(text: str) -> str:
    return _MERIDIEM_RE.sub(r" \1m", text).lower()


_NATURAL_PATTERNS: tuple[_Pattern, ...] = (
    _Pattern("es", _ES_RE, ES_MONTHS, ES_WEEKDAYS, _prepare_es),
    _Pattern("en", _EN_MONTH_FIRST_RE, EN_MONTHS, EN_WEEKDAYS, _prepare_en),
    _Pattern("en", _EN_DAY_FIRST_RE, EN_MONTHS, EN_WEEKDAYS, _prepare_en),
)
_NUMERIC_PATTERN = _Pattern("numeric", _NUMERIC_RE, None, frozenset(), _prepare_en)


def _ordered_patterns(hint: str | None) -> list[_Pattern]:
    natural = list(_NATURAL_PATTERNS)
    if hint:
        natural.sort(key=lambda p: p.locale != hint.lower())
    return [*natural, _NUMERIC_PATTERN]


def _parse_iso(text: str, tz: tzinfo) -> datetime | None:
    if not _ISO_RE.match(text):
        return None
    try:
        parsed = datetime.fromisoformat(text.replace(" ", "T", 1) if " " in text[:11] else text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def _clock(match: re.Match[str]) -> time | None:
    if match.group("hour") is None:
        return time(0, 0)
    hour = int(match.group("hour"))
    minute = int(match.group("minute"))
    second = int(match.group("second") or 0)
    meridiem = match.group("ampm")
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if meridiem.lower() == "p" else 0)
    try:
        return time(hour, minute, second)
    except ValueError:
        return None


def _month_number(pattern: _Pattern, raw: str) -> int | None:
    if pattern.months is None:
        return int(raw)
    return pattern.months.get(raw.rstrip("."))


def _apply_pattern(
    pattern: _Pattern, text: str, now: datetime, tz: tzinfo, assume_past: bool
) -> datetime | None:
    match = pattern.regex.match(pattern.prepare(text))
    if match is None:
        return None

    weekday = match.groupdict().get("weekday")
    if weekday and weekday not in pattern.weekdays:
        return None

    month = _month_number(pattern, match.group("month"))
    clock = _clock(match)
    if month is None or clock is None:
        return None

    day = int(match.group("day"))
    year_text = match.group("year")
    year = int(year_text) if year_text else now.year

    try:
        candidate = datetime.combine(date(year, month, day), clock, tzinfo=tz)
    except ValueError:
        if pattern.months is not None:
            return None
        # Month-first numeric date such as 12/31/2025
        try:
            candidate = datetime.combine(date(year, day, month), clock, tzinfo=tz)
        except ValueError:
            return None

    if year_text is None and assume_past and candidate > now + FUTURE_TOLERANCE:
        try:
            candidate = candidate.replace(year=year - 1)
        except ValueError:
            return None
    return candidate


def parse_date(
    text: str | None,
    hint: str | None = None,
    *,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
    assume_past: bool = True,
) -> datetime | None:
    """Parse a date from carrier text.

    Args:
        text: The raw date text.
        hint: Optional locale ("es" or "en") whose patterns are tried first.
        now: Reference time for year inference; defaults to the current time.
        tz: Timezone attached to dates that carry no offset.
        assume_past: Roll year-less dates more than 24h in the future back a year.

    Returns:
        A timezone-aware datetime, or None when no pattern matches. Callers
        substitute an ordering-preserving placeholder for None.
    """
    if not text or not text.strip():
        return None
    text = " ".join(text.split())
    now = now or datetime.now(tz)

    iso = _parse_iso(text, tz)
    if iso is not None:
        return iso

    for pattern in _ordered_patterns(hint):
        parsed = _apply_pattern(pattern, text, now, tz, assume_past)
        if parsed is not None:
            return parsed
    return None


def parse_arrival(
    text: str | None,
    *,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> datetime | None:
    """Parse an estimated-arrival text such as "Llega mañana" or "Arriving December 3"."""
    if not text or not text.strip():
        return None
    now = now or datetime.now(tz)
    cleaned = _ARRIVAL_PREFIX_RE.sub("", " ".join(text.split())).strip(" .")

    offset = _RELATIVE_DAYS.get(cleaned.lower())
    if offset is not None:
        day = now.astimezone(tz).date() + timedelta(days=offset)
        return datetime.combine(day, time(0, 0), tzinfo=tz)

    return parse_date(cleaned, now=now, tz=tz, assume_past=False)
