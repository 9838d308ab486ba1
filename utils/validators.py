import re

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")

def is_valid_date(date_str: str) -> bool:
    return isinstance(date_str, str) and bool(_DATE_RE.match(date_str))

def is_valid_time(time_str: str) -> bool:
    return isinstance(time_str, str) and bool(_TIME_RE.match(time_str))

def is_valid_color(color: str) -> bool:
    return isinstance(color, str) and bool(_COLOR_RE.match(color))

def is_valid_weekday(day) -> bool:
    return isinstance(day, int) and not isinstance(day, bool) and 0 <= day <= 6
