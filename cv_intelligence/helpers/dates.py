import re
from datetime import date
from typing import Optional, Tuple

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}

MONTH_NAME_PATTERN = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?"

_ISO_RE = re.compile(r"^((?:19|20)\d{2})[-/.](\d{1,2})(?:[-/.]\d{1,2})?$")
_MY_RE = re.compile(r"^(\d{1,2})[/.-]((?:19|20)\d{2})$")
_NAME_RE = re.compile(r"^([A-Za-z]+)\.?,?\s+((?:19|20)\d{2})$")
_YEAR_RE = re.compile(r"^((?:19|20)\d{2})$")

# "Jan 2019 - Present", "2019-01 to 2021-03", "03/2018 – 06/2020"
_DATE_TOKEN = (
    rf"(?:{MONTH_NAME_PATTERN}\s+(?:19|20)\d{{2}}|(?:19|20)\d{{2}}[-/.]\d{{1,2}}|\d{{1,2}}/(?:19|20)\d{{2}}|(?:19|20)\d{{2}})"
)
DATE_RANGE_RE = re.compile(
    rf"({_DATE_TOKEN})\s*(?:-|–|—|to|until)\s*({_DATE_TOKEN}|present|current|now|today)",
    re.IGNORECASE,
)


def is_open_end(value: str) -> bool:
    v = (value or "").strip().lower()
    return v in ("present", "current", "now", "today", "ongoing", "till date", "to date")


def parse_month(value: Optional[str], today: Optional[date] = None) -> Optional[date]:
    """Parse a résumé date into the first day of its month.

    Year-only values map to January. Open ends such as "Present" map to the
    current month. Returns None when the value cannot be interpreted.
    """
    if not value:
        return None
    v = value.strip()
    if is_open_end(v):
        today = today or date.today()
        return date(today.year, today.month, 1)

    m = _ISO_RE.match(v)
    if m:
        return _safe(int(m.group(1)), int(m.group(2)))
    m = _MY_RE.match(v)
    if m:
        return _safe(int(m.group(2)), int(m.group(1)))
    m = _NAME_RE.match(v)
    if m:
        month = MONTHS.get(m.group(1)[:4].lower()) or MONTHS.get(m.group(1)[:3].lower())
        if month:
            return _safe(int(m.group(2)), month)
        return None
    m = _YEAR_RE.match(v)
    if m:
        return date(int(m.group(1)), 1, 1)
    return None


def months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


def find_date_range(text: str) -> Optional[Tuple[str, str]]:
    """First "start - end" date range in a line of text, as raw strings."""
    m = DATE_RANGE_RE.search(text or "")
    if not m:
        return None
    return m.group(1).strip(), m.group(2).strip()


def _safe(year: int, month: int) -> Optional[date]:
    if 1 <= month <= 12:
        return date(year, month, 1)
    return None
