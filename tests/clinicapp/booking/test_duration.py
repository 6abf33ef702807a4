from datetime import time

import pytest

from clinicapp.booking.duration import crosses_midnight, derive_end_time, parse_time_of_day


@pytest.mark.parametrize(
    ('start_time', 'duration', 'expected'),
    [
        ('09:00', 30, '09:30'),
        ('09:45', 30, '10:15'),
        ('10:30', 90, '12:00'),
        ('08:05', 0, '08:05'),
        ('00:00', 1439, '23:59'),
    ],
)
def test_derive_end_time_adds_duration_and_rolls_hours(start_time: str, duration: int, expected: str) -> None:
    assert derive_end_time(start_time, duration) == expected


def test_derive_end_time_wraps_past_midnight() -> None:
    assert derive_end_time('23:50', 30) == '00:20'
    assert crosses_midnight('23:50', 30)
    assert not crosses_midnight('22:00', 30)


def test_derive_end_time_rejects_negative_duration() -> None:
    with pytest.raises(ValueError):
        derive_end_time('09:00', -15)


def test_parse_time_of_day_accepts_seconds_and_drops_them() -> None:
    assert parse_time_of_day('14:05:59') == time(14, 5)


@pytest.mark.parametrize('value', ['', '9am', '25:00', '12:60'])
def test_parse_time_of_day_rejects_malformed_values(value: str) -> None:
    with pytest.raises(ValueError):
        parse_time_of_day(value)
