"""Season week clock: which NFL weeks have kicked off."""

from datetime import date, datetime, timedelta

from nerdfootball.config import settings
from nerdfootball.models.survivor import MAX_WEEK
from nerdfootball.utils import utcnow


def current_week(now: datetime | None = None, season_start: date | None = None) -> int:
    """Latest week that has started (0 before the season opener).

    Week n starts 7 * (n - 1) days after the season start date.
    """
    now = now or utcnow()
    start = season_start or settings.SEASON_START_DATE
    if now.date() < start:
        return 0
    week = (now.date() - start).days // 7 + 1
    return min(week, MAX_WEEK)


def week_start(week: int, season_start: date | None = None) -> date:
    start = season_start or settings.SEASON_START_DATE
    return start + timedelta(days=7 * (week - 1))


def has_started(week: int, now: datetime | None = None) -> bool:
    return week <= current_week(now)
