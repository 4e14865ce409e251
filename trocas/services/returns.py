"""Return request creation and status lifecycle."""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from trocas.exceptions import InvalidTransition, ReturnRequestNotFound, ValidationError
from trocas.models.base import utcnow
from trocas.models.return_request import ResolutionType, ReturnRequest, ReturnStatus
from trocas.models.store import Store
from trocas.services.cache import QueryCache, cache_key
from trocas.services.eligibility import Clock, utc_now
from trocas.services.order_lookup import ClientFactory, Order, PortalSettings, lookup_order

logger = structlog.get_logger()

CENTS = Decimal("0.01")

# target status -> status the request must currently have
TRANSITIONS: dict[str, str] = {
    ReturnStatus.APPROVED: ReturnStatus.PENDING,
    ReturnStatus.REJECTED: ReturnStatus.PENDING,
    ReturnStatus.COMPLETED: ReturnStatus.APPROVED,
}


@dataclass
class SelectedItem:
    item_id: str
    quantity: int | None = None
    reason: str | None = None


@dataclass
class ReturnSubmission:
    """What the customer sends from the portal."""

    order_number: str
    customer_email: str
    resolution_type: str
    items: list[SelectedItem] = field(default_factory=list)
    reason: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    customer_postal_code: str | None = None
    customer_address: str | None = None
    customer_address_number: str | None = None
    customer_district: str | None = None
    customer_city: str | None = None
    customer_state: str | None = None


def compute_credit_value(
    total_value: Decimal,
    resolution_type: str,
    bonus_percent: int | Decimal,
) -> Decimal | None:
    """Store credit owed for a request: total plus bonus, rounded half-up to cents."""
    if resolution_type != ResolutionType.STORE_CREDIT:
        return None
    credit = total_value * (1 + Decimal(bonus_percent) / 100)
    return credit.quantize(CENTS, rounding=ROUND_HALF_UP)


def required_status_for(target: str) -> str:
    """Status a request must be in to move to target."""
    if target not in TRANSITIONS:
        raise InvalidTransition(f"Status inválido: {target}")
    return TRANSITIONS[target]


def _build_items(
    order: Order,
    selected: list[SelectedItem],
    portal_settings: PortalSettings,
) -> tuple[list[dict], Decimal]:
    """Validate the selection against the order and price it."""
    if not selected:
        raise ValidationError("Selecione ao menos um item")

    items: list[dict] = []
    total = Decimal("0")
    seen: set[str] = set()

    for choice in selected:
        order_item = order.item(choice.item_id)
        if order_item is None:
            raise ValidationError(f"Item {choice.item_id} não pertence ao pedido")
        if choice.item_id in seen:
            raise ValidationError(f"Item {choice.item_id} selecionado mais de uma vez")
        seen.add(choice.item_id)

        quantity = order_item.quantity if choice.quantity is None else choice.quantity
        if quantity < 1 or quantity > order_item.quantity:
            raise ValidationError(f"Quantidade inválida para {order_item.name}")

        reason = (choice.reason or "").strip() or None
        if portal_settings.requires_reason and reason is None:
            raise ValidationError("Informe o motivo para cada item")

        if not portal_settings.allow_partial_returns and quantity != order_item.quantity:
            raise ValidationError("Esta loja não aceita devoluções parciais")

        total += order_item.price * quantity
        items.append(
            {
                "id": order_item.id,
                "product_id": order_item.product_id,
                "name": order_item.name,
                "price": float(order_item.price),
                "quantity": quantity,
                "image": order_item.image,
                "reason": reason,
            }
        )

    if not portal_settings.allow_partial_returns and len(seen) != len(order.items):
        raise ValidationError("Esta loja não aceita devoluções parciais")

    return items, total.quantize(CENTS, rounding=ROUND_HALF_UP)


def _check_resolution(resolution_type: str, portal_settings: PortalSettings) -> None:
    if resolution_type == ResolutionType.REFUND:
        if not portal_settings.allow_refund:
            raise ValidationError("Esta loja não aceita reembolso")
    elif resolution_type == ResolutionType.STORE_CREDIT:
        if not portal_settings.allow_store_credit:
            raise ValidationError("Esta loja não aceita crédito na loja")
    else:
        raise ValidationError(f"Tipo de resolução inválido: {resolution_type}")


async def invalidate_request_views(cache: QueryCache | None, owner_id: str) -> None:
    """Drop cached request lists and dashboard metrics of an owner."""
    if cache is None:
        return
    await cache.invalidate(cache_key("return-requests", owner_id))
    await cache.invalidate(cache_key("dashboard-metrics", owner_id))


async def create_return_request(
    session: AsyncSession,
    store_slug: str,
    submission: ReturnSubmission,
    cache: QueryCache | None = None,
    client_factory: ClientFactory | None = None,
    now: Clock = utc_now,
) -> ReturnRequest:
    """
    Create a pending return request from a portal submission.

    The order is looked up again so that item prices, customer identity and the
    return window come from Nuvemshop rather than from the client.
    """
    lookup = await lookup_order(
        session,
        store_slug,
        submission.order_number,
        submission.customer_email,
        client_factory=client_factory,
        now=now,
    )
    if not lookup.eligibility.is_eligible:
        raise ValidationError(lookup.eligibility.message)

    _check_resolution(submission.resolution_type, lookup.settings)
    items, total_value = _build_items(lookup.order, submission.items, lookup.settings)

    bonus_percent = (
        lookup.settings.store_credit_bonus
        if submission.resolution_type == ResolutionType.STORE_CREDIT
        else 0
    )
    order = lookup.order

    return_request = ReturnRequest(
        store_id=lookup.store_id,
        order_id=order.id,
        order_number=order.number,
        customer_name=order.customer_name or submission.customer_name or "",
        customer_email=order.customer_email or submission.customer_email,
        customer_phone=submission.customer_phone,
        customer_postal_code=submission.customer_postal_code,
        customer_address=submission.customer_address,
        customer_address_number=submission.customer_address_number,
        customer_district=submission.customer_district,
        customer_city=submission.customer_city,
        customer_state=submission.customer_state,
        items=items,
        total_value=total_value,
        credit_value=compute_credit_value(total_value, submission.resolution_type, bonus_percent),
        bonus_percent=bonus_percent,
        resolution_type=submission.resolution_type,
        reason=submission.reason,
        status=ReturnStatus.PENDING.value,
    )
    session.add(return_request)
    await session.commit()

    store = await session.get(Store, lookup.store_id)
    if store is not None:
        await invalidate_request_views(cache, store.owner_id)

    logger.info(
        "return_request_created",
        return_request_id=return_request.id,
        store_id=lookup.store_id,
        order_number=order.number,
        resolution_type=submission.resolution_type,
        total_value=str(total_value),
    )
    return return_request


async def get_return_request(session: AsyncSession, return_request_id: str) -> ReturnRequest:
    result = await session.execute(
        select(ReturnRequest).where(ReturnRequest.id == return_request_id)
    )
    return_request = result.scalar_one_or_none()
    if return_request is None:
        raise ReturnRequestNotFound()
    return return_request


async def list_return_requests(
    session: AsyncSession,
    owner_id: str,
    store_id: str | None = None,
) -> list[ReturnRequest]:
    """Requests of the owner's stores, newest first."""
    stmt = (
        select(ReturnRequest)
        .join(Store, Store.id == ReturnRequest.store_id)
        .where(Store.owner_id == owner_id)
        .order_by(ReturnRequest.created_at.desc())
    )
    if store_id:
        stmt = stmt.where(ReturnRequest.store_id == store_id)

    result = await session.execute(stmt)
    return list(result.scalars().all())


async def transition_status(
    session: AsyncSession,
    return_request: ReturnRequest,
    target: str,
    cache: QueryCache | None = None,
) -> ReturnRequest:
    """
    Move a request forward in its lifecycle.

    pending -> approved | rejected, approved -> completed. The update is
    conditional on the expected current status, so of two concurrent
    transitions from the same state only one succeeds.

    Raises:
        InvalidTransition: Target not reachable from the current status, or the
            status changed concurrently
    """
    expected = required_status_for(target)
    return_request_id = return_request.id
    if return_request.status != expected:
        raise InvalidTransition(
            f"Não é possível alterar de {return_request.status} para {target}"
        )

    result = await session.execute(
        update(ReturnRequest)
        .where(
            ReturnRequest.id == return_request_id,
            ReturnRequest.status == expected,
        )
        .values(status=str(target), updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        logger.warning(
            "return_status_conflict",
            return_request_id=return_request_id,
            expected=str(expected),
            target=str(target),
        )
        raise InvalidTransition("A solicitação foi alterada por outra operação")

    await session.commit()
    await session.refresh(return_request)

    await invalidate_request_views(cache, return_request.store.owner_id)

    logger.info(
        "return_status_changed",
        return_request_id=return_request.id,
        from_status=str(expected),
        to_status=str(target),
    )
    return return_request
