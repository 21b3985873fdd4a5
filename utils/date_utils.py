# utils/date_utils.py
"""タイムラインの期間プリセットを具体的な日時区間に変換します。"""

import calendar
import datetime
from enum import Enum
from typing import Optional

from models.gallery_models import DateInterval


def _start_of_day(moment: datetime.datetime) -> datetime.datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _end_of_day(moment: datetime.datetime) -> datetime.datetime:
    return moment.replace(hour=23, minute=59, second=59, microsecond=999999)


def _month_interval(year: int, month: int, tzinfo: Optional[datetime.tzinfo]) -> DateInterval:
    last_day = calendar.monthrange(year, month)[1]
    start = datetime.datetime(year, month, 1, tzinfo=tzinfo)
    end = _end_of_day(datetime.datetime(year, month, last_day, tzinfo=tzinfo))
    return DateInterval(start, end)


class DateRangePreset(str, Enum):
    """タイムラインで選択できる期間のプリセット。週は月曜始まり。"""
    ALL = "all"
    TODAY = "today"
    YESTERDAY = "yesterday"
    THIS_WEEK = "this_week"
    LAST_WEEK = "last_week"
    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"
    LAST_30_DAYS = "last_30_days"
    LAST_90_DAYS = "last_90_days"

    def to_interval(self, now: datetime.datetime) -> Optional[DateInterval]:
        """基準時刻 now に対する具体的な日時区間を返す。

        Args:
            now (datetime.datetime): 基準となる現在時刻。区間は now と同じタイムゾーンで計算する。

        Returns:
            Optional[DateInterval]: 日時区間。ALL の場合は None（無制限）。
        """
        if self is DateRangePreset.ALL:
            return None
        if self is DateRangePreset.TODAY:
            return DateInterval(_start_of_day(now), _end_of_day(now))
        if self is DateRangePreset.YESTERDAY:
            yesterday = now - datetime.timedelta(days=1)
            return DateInterval(_start_of_day(yesterday), _end_of_day(yesterday))
        if self in (DateRangePreset.THIS_WEEK, DateRangePreset.LAST_WEEK):
            monday = _start_of_day(now - datetime.timedelta(days=now.weekday()))
            if self is DateRangePreset.LAST_WEEK:
                monday -= datetime.timedelta(days=7)
            sunday = _end_of_day(monday + datetime.timedelta(days=6))
            return DateInterval(monday, sunday)
        if self is DateRangePreset.THIS_MONTH:
            return _month_interval(now.year, now.month, now.tzinfo)
        if self is DateRangePreset.LAST_MONTH:
            year, month = (now.year - 1, 12) if now.month == 1 else (now.year, now.month - 1)
            return _month_interval(year, month, now.tzinfo)
        # 直近N日は開始のみを制限する
        days = 30 if self is DateRangePreset.LAST_30_DAYS else 90
        return DateInterval(start=now - datetime.timedelta(days=days))
