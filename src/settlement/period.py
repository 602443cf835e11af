"""Settlement period resolution.

A settlement covers one ISO-8601 week of the company's civil calendar:
Monday 00:00:00.000 through Sunday 23:59:59.999. Civil time is derived from
UTC with a fixed offset (``CIVIL_TIME_OFFSET``) rather than a timezone
database, so daylight saving transitions are deliberately ignored. Swapping
in a real timezone only requires changing how ``PeriodResolver`` turns a civil
Monday into a UTC instant.

All instants produced here are timezone-aware UTC datetimes. Naive datetimes
handed in by callers are read as UTC.
"""

from datetime import MAXYEAR, MINYEAR, UTC, date, datetime, time, timedelta

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from src.core.config import Settings
from src.core.constants import CIVIL_TIME_OFFSET, DAYS_PER_WEEK, MAX_WEEK, MIN_WEEK
from src.core.exceptions import InvalidPeriodError

WEEK_LENGTH = timedelta(days=DAYS_PER_WEEK)
END_OF_PERIOD_RESOLUTION = timedelta(milliseconds=1)


def as_utc(instant: datetime) -> datetime:
    """Return ``instant`` as an aware UTC datetime."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


def weeks_in_year(year: int) -> int:
    """Return the number of ISO weeks (52 or 53) in ``year``."""
    # December 28th always falls in the last ISO week of its year
    return date(year, 12, 28).isocalendar().week


class SettlementPeriod(BaseModel):
    """One settlement week expressed as an absolute UTC range."""

    model_config = ConfigDict(frozen=True)

    week: int = Field(..., ge=MIN_WEEK, le=MAX_WEEK, description="ISO week number")
    year: int = Field(..., description="ISO week-numbering year")
    start: datetime = Field(..., description="First instant of the week (UTC)")
    end: datetime = Field(..., description="Last millisecond of the week (UTC)")

    @property
    def end_exclusive(self) -> datetime:
        """First instant after the week."""
        return self.start + WEEK_LENGTH

    @property
    def days(self) -> int:
        """Number of calendar days covered by the period."""
        return (self.end_exclusive - self.start).days

    @property
    def label(self) -> str:
        """Short label such as ``2024-W07``."""
        return f"{self.year}-W{self.week:02d}"

    def contains(self, instant: datetime) -> bool:
        """Check whether ``instant`` falls inside the week.

        The upper bound is the start of the following week rather than
        ``end`` so that sub-millisecond instants of the last millisecond are
        still inside.
        """
        instant = as_utc(instant)
        return self.start <= instant < self.end_exclusive


class FeedWindow(BaseModel):
    """A settlement period in the external feed's convention (Unix seconds)."""

    model_config = ConfigDict(frozen=True)

    start_ts: int
    end_ts: int

    @property
    def is_empty(self) -> bool:
        """True when the window ends before it starts (week not begun yet)."""
        return self.end_ts < self.start_ts


class PeriodResolver:
    """Convert between (week, year) pairs and absolute settlement periods.

    Args:
        civil_offset: Fixed offset of the companies' civil time from UTC.
    """

    def __init__(self, civil_offset: timedelta = CIVIL_TIME_OFFSET) -> None:
        self.civil_offset = civil_offset

    @classmethod
    def from_settings(cls, settings: Settings) -> "PeriodResolver":
        """Build a resolver using the configured civil time offset."""
        return cls(settings.settlement_config.civil_time_offset)

    def resolve(self, week: int, year: int) -> SettlementPeriod:
        """Return the settlement period of ISO ``week`` in ``year``.

        Args:
            week: ISO week number, 1 to 53.
            year: ISO week-numbering year.

        Returns:
            SettlementPeriod: The Monday-to-Sunday range in UTC.

        Raises:
            InvalidPeriodError: If the week does not exist in that year.
        """
        self._validate(week, year)

        monday = date.fromisocalendar(year, week, 1)
        civil_start = datetime.combine(monday, time.min, tzinfo=UTC)
        try:
            start = civil_start - self.civil_offset
            end_exclusive = start + WEEK_LENGTH
        except OverflowError as e:
            msg = f"Week {week} of {year} is outside the representable range"
            raise InvalidPeriodError(
                msg, context={"week": week, "year": year}, cause=e
            ) from e

        return SettlementPeriod(
            week=week,
            year=year,
            start=start,
            end=end_exclusive - END_OF_PERIOD_RESOLUTION,
        )

    def current_week(self, now: datetime) -> tuple[int, int]:
        """Return the ISO ``(week, year)`` that contains ``now``.

        The returned year is the ISO week-numbering year, which differs from
        the calendar year for the first and last days of some years.

        Raises:
            InvalidPeriodError: If ``now`` is too close to the ends of the
                representable range to be shifted to civil time.
        """
        try:
            civil_now = as_utc(now) + self.civil_offset
        except OverflowError as e:
            msg = f"Instant {now.isoformat()} cannot be shifted to civil time"
            raise InvalidPeriodError(
                msg, context={"now": now.isoformat()}, cause=e
            ) from e
        iso = civil_now.isocalendar()
        return iso.week, iso.year

    def resolve_current(self, now: datetime) -> SettlementPeriod:
        """Return the settlement period that contains ``now``."""
        return self.resolve(*self.current_week(now))

    def previous(self, period: SettlementPeriod) -> SettlementPeriod:
        """Return the week before ``period``."""
        return self._shift(period, -WEEK_LENGTH)

    def following(self, period: SettlementPeriod) -> SettlementPeriod:
        """Return the week after ``period``."""
        return self._shift(period, WEEK_LENGTH)

    def _shift(self, period: SettlementPeriod, delta: timedelta) -> SettlementPeriod:
        monday = date.fromisocalendar(period.year, period.week, 1) + delta
        iso = monday.isocalendar()
        return self.resolve(iso.week, iso.year)

    def _validate(self, week: int, year: int) -> None:
        context = {"week": week, "year": year}

        if not isinstance(week, int) or isinstance(week, bool):
            msg = f"Week must be an integer, got {week!r}"
            raise InvalidPeriodError(msg, context=context)
        if not isinstance(year, int) or isinstance(year, bool):
            msg = f"Year must be an integer, got {year!r}"
            raise InvalidPeriodError(msg, context=context)

        if not MINYEAR <= year <= MAXYEAR:
            msg = f"Year {year} is outside the supported range"
            raise InvalidPeriodError(msg, context=context)

        if not MIN_WEEK <= week <= MAX_WEEK:
            msg = f"Week {week} is outside [{MIN_WEEK}, {MAX_WEEK}]"
            raise InvalidPeriodError(msg, context=context)

        if week > weeks_in_year(year):
            msg = f"Year {year} has no week {week}"
            raise InvalidPeriodError(msg, context=context)


def to_feed_window(
    period: SettlementPeriod,
    now: datetime | None = None,
    *,
    clip_to_now: bool = True,
) -> FeedWindow:
    """Convert a period to the external feed's timestamp convention.

    The feed takes whole Unix seconds and rejects timestamps in the future,
    so the end is truncated to the second and, for a running week, clipped
    to ``now``.
    """
    start_ts = int(period.start.timestamp())
    end_ts = int(period.end.timestamp())

    if clip_to_now:
        now_ts = int(as_utc(now or datetime.now(UTC)).timestamp())
        if end_ts > now_ts:
            logger.debug(
                "Clipping feed window of {} to current time",
                period.label,
                end_ts=end_ts,
                now_ts=now_ts,
            )
            end_ts = now_ts

    return FeedWindow(start_ts=start_ts, end_ts=end_ts)
