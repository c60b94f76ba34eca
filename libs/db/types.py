"""Portable column types."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator

from libs.common.datetime_utils import as_utc


class UtcDateTime(TypeDecorator):
    """Timezone-aware DateTime that always hands back aware UTC values.

    Backends without native timezone support (SQLite) return naive datetimes;
    those are stored in UTC and re-tagged on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect):
        return as_utc(value)

    def process_result_value(self, value: Optional[datetime], dialect):
        return as_utc(value)
