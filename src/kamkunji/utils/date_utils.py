from datetime import datetime, timezone
from typing import Optional, Union

import pytz
from dateutil import parser as date_parser


class DateUtils:
    """
    Date/time helpers

    - Timezone-aware "now" for storage and for M-Pesa timestamps
    - ISO parsing of filter parameters
    - Rendering of database timestamps (datetime on PostgreSQL, text on SQLite)
    """

    UTC = timezone.utc
    NAIROBI = pytz.timezone('Africa/Nairobi')

    MPESA_TIMESTAMP_FORMAT = '%Y%m%d%H%M%S'

    @classmethod
    def now_utc(cls) -> datetime:
        """Get current UTC datetime - always use this for database storage"""
        return datetime.now(cls.UTC)

    @classmethod
    def now_nairobi(cls) -> datetime:
        return datetime.now(cls.NAIROBI)

    @classmethod
    def mpesa_timestamp(cls, dt: Optional[datetime] = None) -> str:
        """Daraja wants YYYYMMDDHHMMSS in East Africa Time"""
        dt = dt or cls.now_utc()
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=cls.UTC)
        return dt.astimezone(cls.NAIROBI).strftime(cls.MPESA_TIMESTAMP_FORMAT)

    @classmethod
    def parse_iso_string(cls, date_string: str) -> datetime:
        """
        Parse ISO 8601 date string to datetime

        Handles various formats:
        - 2026-01-03
        - 2026-01-03T10:30:00Z
        - 2026-01-03T10:30:00+03:00
        """
        try:
            parsed = date_parser.isoparse(date_string)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid date format: {date_string}") from e
        # naive input is taken as UTC
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=cls.UTC)

    @classmethod
    def to_db_string(cls, dt: datetime) -> str:
        """
        Render a filter bound in the 'YYYY-MM-DD HH:MM:SS' UTC form both
        PostgreSQL and SQLite compare correctly against stored timestamps.
        """
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=cls.UTC)
        return dt.astimezone(cls.UTC).strftime('%Y-%m-%d %H:%M:%S')

    @classmethod
    def to_iso_string(cls, value: Union[datetime, str, None]) -> Optional[str]:
        """Convert a stored timestamp to ISO 8601"""
        if value is None:
            return None
        if isinstance(value, str):
            value = date_parser.parse(value)
        if value.tzinfo is None:
            value = value.replace(tzinfo=cls.UTC)
        return value.isoformat()

    @classmethod
    def get_end_of_day(cls, dt: datetime) -> datetime:
        """Last microsecond of the day, for inclusive date-only upper bounds"""
        return dt.replace(hour=23, minute=59, second=59, microsecond=999999)
