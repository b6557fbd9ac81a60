from __future__ import annotations

import re
from dataclasses import dataclass

from profile_analyzer.extraction.base import SectionExtractor
from profile_analyzer.schemas.profile import SectionItem

_DATE_RANGE = re.compile(r"(\w{3}\s+\d{4})\s*[-–]\s*(\w{3}\s+\d{4}|present)", re.IGNORECASE)
_DURATION = re.compile(r"\d+\s*(?:yrs?|years?)(?:\s+\d+\s*(?:mos?|months?))?|\d+\s*(?:mos?|months?)", re.IGNORECASE)
_YEARS = re.compile(r"(\d+)\s*(?:yr|year)", re.IGNORECASE)
_MONTHS = re.compile(r"(\d+)\s*(?:mo|month)", re.IGNORECASE)
_QUANTIFIED = re.compile(
    r"\d+[%+,kmb$]*\s*(revenue|users|customers|growth|increase|decrease|roi|saved|generated|improvement|reduction)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class DateInfo:
    start: str = ""
    end: str = ""
    duration: str = ""
    is_current: bool = False
    months: int = 0


def parse_duration_months(text: str | None) -> int:
    months = 0
    years_match = _YEARS.search(text or "")
    if years_match:
        months += int(years_match.group(1)) * 12
    months_match = _MONTHS.search(text or "")
    if months_match:
        months += int(months_match.group(1))
    return months


def parse_date_info(text: str | None) -> DateInfo:
    text = text or ""
    start = end = duration = ""
    current = False
    date_match = _DATE_RANGE.search(text)
    if date_match:
        start, end = date_match.group(1), date_match.group(2)
        current = end.lower() == "present"
    duration_match = _DURATION.search(text)
    if duration_match:
        duration = duration_match.group(0)
    return DateInfo(
        start=start,
        end=end,
        duration=duration,
        is_current=current,
        months=parse_duration_months(duration),
    )


def has_quantified_achievements(text: str | None) -> bool:
    return bool(_QUANTIFIED.search(text or ""))


def experience_signals(items: tuple[SectionItem, ...]) -> dict[str, object]:
    """Aggregate tenure and content signals across positions."""
    dates = [parse_date_info(item.caption) for item in items]
    total_months = sum(info.months for info in dates)
    return {
        "positions": len(items),
        "described": sum(1 for item in items if (item.description or "").strip()),
        "current_roles": sum(1 for info in dates if info.is_current),
        "total_months": total_months,
        "average_tenure_months": round(total_months / len(items)) if items else 0,
        "quantified": sum(1 for item in items if has_quantified_achievements(item.description)),
    }


class ExperienceExtractor(SectionExtractor):
    name = "experience"
