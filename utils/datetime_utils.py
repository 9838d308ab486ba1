from datetime import datetime, date, timedelta
from typing import Callable, List, Optional, Union
import pytz

DEFAULT_TZ = pytz.UTC

Clock = Callable[[], datetime]

def get_timezone(name: Optional[str] = None):
    if not name:
        return DEFAULT_TZ
    return pytz.timezone(name)

def now_local(tz=None) -> datetime:
    return datetime.now(tz or DEFAULT_TZ)

def make_clock(tz_name: Optional[str] = None) -> Clock:
    """Часы, возвращающие текущее время в заданной таймзоне"""
    tz = get_timezone(tz_name)
    return lambda: now_local(tz)

def fixed_clock(moment: datetime) -> Clock:
    if moment.tzinfo is None:
        moment = DEFAULT_TZ.localize(moment)
    return lambda: moment

def to_date(value: Union[date, datetime, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_date(value)

def parse_date(date_str: str, fmt: str = "%Y-%m-%d") -> date:
    return datetime.strptime(date_str, fmt).date()

def format_date(d: Union[date, datetime], fmt: str = "%Y-%m-%d") -> str:
    return d.strftime(fmt)

def today(clock: Clock) -> date:
    return clock().date()

def today_str(clock: Clock) -> str:
    return today(clock).isoformat()

def days_ago(clock: Clock, n: int) -> str:
    return (today(clock) - timedelta(days=n)).isoformat()

def days_since(date_str: Optional[str], clock: Clock) -> Optional[int]:
    """Количество дней с указанной даты (None если дата не задана)"""
    if not date_str:
        return None
    return (today(clock) - parse_date(date_str)).days

def weekday_index(value: Union[date, datetime, str]) -> int:
    """День недели в формате документа: 0 = воскресенье ... 6 = суббота"""
    return to_date(value).isoweekday() % 7

def week_days(clock: Clock) -> List[str]:
    """Даты текущей недели, с воскресенья по субботу"""
    current = today(clock)
    start = current - timedelta(days=weekday_index(current))
    return [(start + timedelta(days=i)).isoformat() for i in range(7)]

def week_start(clock: Clock) -> str:
    return week_days(clock)[0]
