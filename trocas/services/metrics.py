"""Dashboard metrics over an owner's return requests."""

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from trocas.models.return_request import ResolutionType, ReturnRequest, ReturnStatus
from trocas.services.returns import list_return_requests

SETTLED = {ReturnStatus.APPROVED, ReturnStatus.COMPLETED}


@dataclass(frozen=True)
class DashboardMetrics:
    total_requests: int
    store_credit_conversion: int
    total_refunded_value: float
    retained_revenue: float
    bonus_cost: float
    pending_requests: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def compute_dashboard_metrics(requests: Iterable[ReturnRequest]) -> DashboardMetrics:
    """
    Aggregate requests into dashboard figures.

    Money figures only count approved or completed requests; the conversion
    rate is the rounded share of store-credit requests among all of them.
    """
    requests = list(requests)
    total = len(requests)

    store_credit = [r for r in requests if r.resolution_type == ResolutionType.STORE_CREDIT]
    refunds = [r for r in requests if r.resolution_type == ResolutionType.REFUND]
    settled_credit = [r for r in store_credit if r.status in SETTLED]
    settled_refunds = [r for r in refunds if r.status in SETTLED]

    conversion = 0
    if total:
        share = Decimal(len(store_credit) * 100) / total
        conversion = int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    refunded = sum((r.total_value for r in settled_refunds), Decimal("0"))
    retained = sum((r.total_value for r in settled_credit), Decimal("0"))
    bonus_cost = sum(
        ((r.credit_value or Decimal("0")) - r.total_value for r in settled_credit),
        Decimal("0"),
    )

    return DashboardMetrics(
        total_requests=total,
        store_credit_conversion=conversion,
        total_refunded_value=float(refunded),
        retained_revenue=float(retained),
        bonus_cost=float(bonus_cost),
        pending_requests=sum(1 for r in requests if r.status == ReturnStatus.PENDING),
    )


async def load_dashboard_metrics(
    session: AsyncSession,
    owner_id: str,
    store_id: str | None = None,
) -> DashboardMetrics:
    requests = await list_return_requests(session, owner_id, store_id)
    return compute_dashboard_metrics(requests)
