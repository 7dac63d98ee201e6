from datetime import date, datetime, timedelta, timezone

SECONDS_PER_DAY = 24 * 60 * 60


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_date(value: date | datetime) -> date:
    """Strip the time of day, keeping only the calendar date."""
    if isinstance(value, datetime):
        return value.date()
    return value


def nights_between(start: date | datetime, end: date | datetime) -> int:
    """Whole nights between two dates; negative or zero when end is not after start."""
    return round((end - start).total_seconds() / SECONDS_PER_DAY)


def age(birth_date: date, as_of: date | None = None) -> int:
    today = as_of or date.today()
    years = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years


def is_within_booking_window(
    value: date | datetime,
    as_of: date | None = None,
    max_horizon_days: int = 365,
) -> bool:
    today = as_of or date.today()
    return as_date(value) <= today + timedelta(days=max_horizon_days)


def is_today_or_future(value: date | datetime, as_of: date | None = None) -> bool:
    today = as_of or date.today()
    return as_date(value) >= today
