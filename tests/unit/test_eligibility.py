"""Unit tests for return window eligibility."""

from datetime import UTC, datetime, timedelta

import pytest

from trocas.services.eligibility import days_between, evaluate_eligibility, parse_timestamp

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def clock():
    return NOW


def days_ago(days: float) -> str:
    return (NOW - timedelta(days=days)).isoformat()


class TestEvaluateEligibility:
    """Tests for the return window rule."""

    @pytest.mark.parametrize(
        "days,window,eligible",
        [
            (0, 7, True),
            (3, 7, True),
            (7, 7, True),
            (8, 7, False),
            (10, 7, False),
            (0, 0, True),
            (1, 0, False),
            (30, 30, True),
        ],
    )
    def test_window_boundaries(self, days, window, eligible):
        result = evaluate_eligibility(days_ago(days), window, now=clock)

        assert result.is_eligible is eligible
        assert result.days_since_order == days
        assert result.return_window_days == window

    def test_eligible_message(self):
        result = evaluate_eligibility(days_ago(3), 7, now=clock)

        assert result.message == "Pedido elegível para troca/devolução"

    def test_expired_message(self):
        result = evaluate_eligibility(days_ago(10), 7, now=clock)

        assert not result.is_eligible
        assert "expirado" in result.message
        assert result.message == "Prazo de 7 dias expirado (10 dias desde a compra)"

    def test_partial_days_are_floored(self):
        result = evaluate_eligibility(days_ago(7.9), 7, now=clock)

        assert result.days_since_order == 7
        assert result.is_eligible

    def test_future_order_is_eligible(self):
        """A creation date after now gives negative days and stays eligible."""
        result = evaluate_eligibility((NOW + timedelta(hours=30)).isoformat(), 7, now=clock)

        assert result.days_since_order == -2
        assert result.is_eligible

    def test_to_dict(self):
        result = evaluate_eligibility(days_ago(1), 7, now=clock)

        assert result.to_dict() == {
            "is_eligible": True,
            "days_since_order": 1,
            "return_window_days": 7,
            "message": "Pedido elegível para troca/devolução",
        }


class TestTimestamps:
    def test_parse_zulu(self):
        assert parse_timestamp("2026-03-01T10:00:00Z") == datetime(2026, 3, 1, 10, tzinfo=UTC)

    def test_parse_nuvemshop_offset(self):
        parsed = parse_timestamp("2026-03-01T10:00:00-0300")

        assert parsed == datetime(2026, 3, 1, 13, tzinfo=UTC)

    def test_naive_is_utc(self):
        assert parse_timestamp("2026-03-01T10:00:00").tzinfo == UTC

    def test_days_between(self):
        start = datetime(2026, 3, 1, 23, 59, tzinfo=UTC)

        assert days_between(start, datetime(2026, 3, 2, 0, 1, tzinfo=UTC)) == 0
        assert days_between(start, datetime(2026, 3, 3, 0, 0, tzinfo=UTC)) == 1
