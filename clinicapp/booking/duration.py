"""Time-of-day arithmetic used to derive an appointment's end time from its service."""

from datetime import datetime, time

MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 24 * MINUTES_PER_HOUR

TIME_OF_DAY_FORMATS = ('%H:%M', '%H:%M:%S')


def parse_time_of_day(value: str) -> time:
    """Parse ``HH:MM`` (seconds tolerated and dropped) into a :class:`time`."""
    candidate = value.strip()
    for time_format in TIME_OF_DAY_FORMATS:
        try:
            return datetime.strptime(candidate, time_format).time().replace(second=0)
        except ValueError:
            continue
    raise ValueError(f'Invalid time of day: {value!r}')


def format_time_of_day(value: time) -> str:
    return f'{value.hour:02d}:{value.minute:02d}'


def minutes_since_midnight(value: time) -> int:
    return value.hour * MINUTES_PER_HOUR + value.minute


def derive_end_time(start_time: str, duration_minutes: int) -> str:
    """Return ``start_time`` plus ``duration_minutes`` on a 24-hour clock.

    Overflow past 23:59 wraps to the next day's clock reading, so a derived
    end time can read earlier than its start; the form validator rejects
    such a booking because both times share one date.
    """
    if isinstance(duration_minutes, bool) or duration_minutes < 0:
        raise ValueError('Duration must be a non-negative number of minutes.')

    end_minutes = (minutes_since_midnight(parse_time_of_day(start_time)) + duration_minutes) % MINUTES_PER_DAY
    hours, minutes = divmod(end_minutes, MINUTES_PER_HOUR)
    return f'{hours:02d}:{minutes:02d}'


def crosses_midnight(start_time: str, duration_minutes: int) -> bool:
    return minutes_since_midnight(parse_time_of_day(start_time)) + duration_minutes >= MINUTES_PER_DAY
