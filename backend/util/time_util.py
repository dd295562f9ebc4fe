from datetime import datetime
from typing import Optional

from dateutil import parser, tz
from dateutil.tz import gettz

tzinfos = {
    "EDT": tz.gettz("America/New_York"),
    "EST": tz.gettz("America/New_York"),
    "PDT": tz.gettz("America/Los_Angeles"),
    "PST": tz.gettz("America/Los_Angeles"),
    # Add more as needed
}

DATE_FORMATS = {
    "MM/DD/YYYY": "%m/%d/%Y",
    "DD/MM/YYYY": "%d/%m/%Y",
    "YYYY-MM-DD": "%Y-%m-%d",
}


def get_current_timestamp_ms() -> int:
    return int(datetime.now().timestamp() * 1000)


def parse_datetime(value, default_tz: str = "UTC") -> Optional[datetime]:
    """Parse an ISO string, a ms timestamp or a datetime into an aware datetime"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        dt = datetime.fromtimestamp(seconds, gettz(default_tz))
    else:
        try:
            dt = parser.parse(str(value), tzinfos=tzinfos)
        except (ValueError, OverflowError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=gettz(default_tz))
    return dt


def format_date(value, date_format: str = "MM/DD/YYYY") -> Optional[str]:
    """Reformat any parseable date into one of DATE_FORMATS"""
    dt = parse_datetime(value) if not isinstance(value, datetime) else value
    if dt is None:
        return None
    return dt.strftime(DATE_FORMATS.get(date_format, DATE_FORMATS["MM/DD/YYYY"]))


def today_str(date_format: str = "MM/DD/YYYY") -> str:
    return datetime.now().strftime(DATE_FORMATS.get(date_format, "%m/%d/%Y"))
