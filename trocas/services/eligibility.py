"""Return window eligibility."""

from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any, Callable

import structlog

logger = structlog.get_logger()

SECONDS_PER_DAY = 86400

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class EligibilityResult:
    """Outcome of a return window check."""

    is_eligible: bool
    days_since_order: int
    return_window_days: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        # Nuvemshop sends "+0000" offsets, which fromisoformat handles on 3.11+
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def days_between(start: datetime, end: datetime) -> int:
    """Whole days elapsed from start to end (floored, may be negative)."""
    return int((end - start).total_seconds() // SECONDS_PER_DAY)


def evaluate_eligibility(
    order_created_at: str | datetime,
    return_window_days: int,
    now: Clock = utc_now,
) -> EligibilityResult:
    """
    Check whether an order is still inside the store's return window.

    An order is eligible while ``days_since_order <= return_window_days``.
    A creation date in the future yields a negative day count; it is treated
    as eligible and logged.
    """
    created_at = parse_timestamp(order_created_at)
    days_since_order = days_between(created_at, now())

    if days_since_order < 0:
        logger.warning(
            "order_created_in_future",
            order_created_at=created_at.isoformat(),
            days_since_order=days_since_order,
        )

    is_eligible = days_since_order <= return_window_days
    if is_eligible:
        message = "Pedido elegível para troca/devolução"
    else:
        message = (
            f"Prazo de {return_window_days} dias expirado "
            f"({days_since_order} dias desde a compra)"
        )

    return EligibilityResult(
        is_eligible=is_eligible,
        days_since_order=days_since_order,
        return_window_days=return_window_days,
        message=message,
    )
