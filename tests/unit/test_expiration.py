# tests/unit/test_expiration.py
"""
Unit Test per la scadenza delle prenotazioni
Autosalone - Gestione Stock e Prezzi
"""

from datetime import datetime, timedelta, timezone

import pytest

from autosalone.core.errors import ValidationError
from autosalone.services.reservation_service import (
    compute_reservation_expiration, watch_reservation_expiration
)

RESERVED_AT = datetime(2025, 3, 1, 10, 0, 0, tzinfo=timezone.utc)


class TestComputeReservationExpiration:

    def test_fresh_reservation(self):
        result = compute_reservation_expiration(RESERVED_AT, 48, now=RESERVED_AT)
        assert result.time_remaining.hours == 48
        assert result.time_remaining.minutes == 0
        assert result.time_remaining.seconds == 0
        assert result.percent_remaining == 100
        assert result.expired is False
        assert result.expires_at == RESERVED_AT + timedelta(hours=48)

    def test_partial_elapsed(self):
        now = RESERVED_AT + timedelta(hours=12, minutes=30, seconds=15)
        result = compute_reservation_expiration(RESERVED_AT, 48, now=now)
        assert (result.time_remaining.hours, result.time_remaining.minutes, result.time_remaining.seconds) == (35, 29, 45)
        assert result.percent_remaining == pytest.approx(73.95, abs=0.01)
        assert not result.expired

    @pytest.mark.parametrize("elapsed_hours", [48, 49, 500])
    def test_expired_reservation_is_zero(self, elapsed_hours):
        result = compute_reservation_expiration(RESERVED_AT, 48, now=RESERVED_AT + timedelta(hours=elapsed_hours))
        assert result.expired is True
        assert result.percent_remaining == 0
        assert result.time_remaining.hours == 0
        assert result.time_remaining.minutes == 0
        assert result.time_remaining.seconds == 0

    def test_percent_decays_monotonically(self):
        # Campioni ogni 37 minuti fino a 6 ore oltre la finestra
        samples = [
            (minutes, compute_reservation_expiration(
                RESERVED_AT, 48, now=RESERVED_AT + timedelta(minutes=minutes)
            ))
            for minutes in range(0, (48 + 6) * 60, 37)
        ] + [(48 * 60, compute_reservation_expiration(RESERVED_AT, 48, now=RESERVED_AT + timedelta(hours=48)))]
        samples.sort(key=lambda sample: sample[0])

        percents = [result.percent_remaining for _, result in samples]
        assert percents == sorted(percents, reverse=True)

        for minutes, result in samples:
            if minutes >= 48 * 60:
                assert result.percent_remaining == 0
                assert result.expired is True
            else:
                assert result.percent_remaining > 0

    def test_timestamp_in_future_is_capped(self):
        result = compute_reservation_expiration(RESERVED_AT, 48, now=RESERVED_AT - timedelta(hours=2))
        assert result.percent_remaining == 100
        assert result.time_remaining.hours == 48

    def test_naive_and_string_timestamps_are_utc(self):
        now = RESERVED_AT + timedelta(hours=24)
        naive = compute_reservation_expiration(datetime(2025, 3, 1, 10, 0, 0), 48, now=now)
        text = compute_reservation_expiration("2025-03-01T10:00:00+00:00", 48, now=now)
        assert naive.percent_remaining == 50
        assert text.percent_remaining == 50

    def test_custom_window(self):
        result = compute_reservation_expiration(RESERVED_AT, 24, now=RESERVED_AT + timedelta(hours=6))
        assert result.percent_remaining == 75

    @pytest.mark.parametrize("window", [0, -1])
    def test_window_must_be_positive(self, window):
        with pytest.raises(ValidationError):
            compute_reservation_expiration(RESERVED_AT, window, now=RESERVED_AT)


class TestWatchReservationExpiration:

    @pytest.mark.asyncio
    async def test_emits_until_expired(self):
        ticks = iter([
            RESERVED_AT,
            RESERVED_AT + timedelta(hours=24),
            RESERVED_AT + timedelta(hours=48),
            RESERVED_AT + timedelta(hours=72),
        ])

        emitted = [e async for e in watch_reservation_expiration(
            RESERVED_AT, 48, interval=0, clock=lambda: next(ticks)
        )]

        assert [e.percent_remaining for e in emitted] == [100, 50, 0]
        assert [e.expired for e in emitted] == [False, False, True]

    @pytest.mark.asyncio
    async def test_consumer_can_stop_early(self):
        watcher = watch_reservation_expiration(RESERVED_AT, 48, interval=0, clock=lambda: RESERVED_AT)

        first = await watcher.__anext__()
        await watcher.aclose()

        assert first.expired is False

# Pytest-Marks
pytestmark = [
    pytest.mark.unit
]
