"""
营业日历时钟
所有“今天”的判断都通过注入的时钟完成，测试时可以固定日期
"""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from ..config.settings import settings


class BusinessClock:
    """按营业地时区返回当前日历日期"""

    def __init__(self, timezone: str = None):
        self.tz = ZoneInfo(timezone or settings.business_timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()


class FixedClock(BusinessClock):
    """固定日期的时钟"""

    def __init__(self, today: date):
        self._today = today

    def now(self) -> datetime:
        return datetime.combine(self._today, time())

    def today(self) -> date:
        return self._today


business_clock = BusinessClock()
