"""Component tests for return request lifecycle and portal submission."""

from datetime import timedelta
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import update

from trocas.exceptions import (
    InvalidTransition,
    OrderNotFound,
    ReturnRequestNotFound,
    StoreNotFound,
    UpstreamAuthError,
    ValidationError,
)
from trocas.integrations.nuvemshop import NuvemshopClient
from trocas.models import ReturnRequest, Store
from trocas.services.order_lookup import lookup_order
from trocas.services.returns import (
    ReturnSubmission,
    SelectedItem,
    compute_credit_value,
    create_return_request,
    get_return_request,
    list_return_requests,
    transition_status,
)


class TestCreditValue:
    def test_store_credit_with_bonus(self):
        assert compute_credit_value(Decimal("200.00"), "store_credit", 5) == Decimal("210.00")

    def test_refund_has_no_credit(self):
        assert compute_credit_value(Decimal("200.00"), "refund", 5) is None

    def test_rounds_half_up_to_cents(self):
        # 33.33 * 1.05 = 34.9965
        assert compute_credit_value(Decimal("33.33"), "store_credit", 5) == Decimal("35.00")
        # 10.05 * 1.10 = 11.055
        assert compute_credit_value(Decimal("10.05"), "store_credit", 10) == Decimal("11.06")

    def test_zero_bonus(self):
        assert compute_credit_value(Decimal("99.90"), "store_credit", 0) == Decimal("99.90")


class TestTransitions:
    """Tests for the status state machine."""

    @pytest.mark.asyncio
    async def test_pending_to_approved(self, session, make_return_request):
        return_request = await make_return_request()

        updated = await transition_status(session, return_request, "approved")

        assert updated.status == "approved"
        reloaded = await get_return_request(session, return_request.id)
        assert reloaded.status == "approved"

    @pytest.mark.asyncio
    async def test_pending_to_rejected(self, session, make_return_request):
        return_request = await make_return_request()

        updated = await transition_status(session, return_request, "rejected")

        assert updated.status == "rejected"

    @pytest.mark.asyncio
    async def test_approved_to_completed(self, session, make_return_request):
        return_request = await make_return_request(status="approved")

        updated = await transition_status(session, return_request, "completed")

        assert updated.status == "completed"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "current,target",
        [
            ("approved", "pending"),
            ("rejected", "approved"),
            ("pending", "completed"),
            ("completed", "approved"),
            ("approved", "rejected"),
        ],
    )
    async def test_invalid_transitions(self, session, make_return_request, current, target):
        return_request = await make_return_request(status=current)

        with pytest.raises(InvalidTransition):
            await transition_status(session, return_request, target)

        reloaded = await get_return_request(session, return_request.id)
        assert reloaded.status == current

    @pytest.mark.asyncio
    async def test_concurrent_change_is_rejected(self, session, make_return_request):
        """A stale copy cannot approve a request another writer already rejected."""
        return_request = await make_return_request()

        await session.execute(
            update(ReturnRequest)
            .where(ReturnRequest.id == return_request.id)
            .values(status="rejected")
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        assert return_request.status == "pending"

        with pytest.raises(InvalidTransition):
            await transition_status(session, return_request, "approved")

        session.expire_all()
        reloaded = await get_return_request(session, return_request.id)
        assert reloaded.status == "rejected"

    @pytest.mark.asyncio
    async def test_get_missing_request(self, session):
        with pytest.raises(ReturnRequestNotFound):
            await get_return_request(session, "00000000-0000-0000-0000-000000000000")


class TestListReturnRequests:
    @pytest.mark.asyncio
    async def test_scoped_to_owner(self, session, store, make_return_request):
        other = Store(
            owner_id="owner-2",
            name="Outra",
            slug="outra",
            api_key="k",
            api_url="https://api.tiendanube.com/v1/2",
        )
        session.add(other)
        await session.commit()

        mine = await make_return_request()
        await make_return_request(store_id=other.id, order_number="2002")

        requests = await list_return_requests(session, "owner-1")

        assert [r.id for r in requests] == [mine.id]
        assert await list_return_requests(session, "owner-1", store_id=other.id) == []


class TestOrderLookup:
    @pytest.mark.asyncio
    async def test_finds_eligible_order(self, session, store, fake_nuvemshop, clock):
        result = await lookup_order(
            session,
            "loja-teste",
            "1001",
            "maria@example.com",
            client_factory=lambda s: fake_nuvemshop,
            now=clock,
        )

        assert result.store_id == store.id
        assert result.order.number == "1001"
        assert result.eligibility.is_eligible
        assert result.eligibility.days_since_order == 3
        assert result.settings.return_window_days == 7
        assert fake_nuvemshop.queries == ["1001"]
        assert fake_nuvemshop.closed

    @pytest.mark.asyncio
    async def test_expired_order(self, session, store, fake_nuvemshop, sample_order, clock):
        sample_order["created_at"] = (clock() - timedelta(days=10)).isoformat()

        result = await lookup_order(
            session, "loja-teste", "1001", "maria@example.com",
            client_factory=lambda s: fake_nuvemshop, now=clock,
        )

        assert not result.eligibility.is_eligible
        assert "expirado" in result.eligibility.message

    @pytest.mark.asyncio
    async def test_wrong_email(self, session, store, fake_nuvemshop, clock):
        with pytest.raises(OrderNotFound):
            await lookup_order(
                session, "loja-teste", "1001", "joao@example.com",
                client_factory=lambda s: fake_nuvemshop, now=clock,
            )

    @pytest.mark.asyncio
    async def test_empty_nuvemshop_search(self, session, store, clock):
        """Nuvemshop answers a search without results with 404 "Last page is 0"."""
        mock = httpx.MockTransport(
            lambda request: httpx.Response(404, json={"code": 404, "description": "Last page is 0"})
        )

        with pytest.raises(OrderNotFound):
            await lookup_order(
                session, "loja-teste", "9999", "maria@example.com",
                client_factory=lambda s: NuvemshopClient(s.api_url, s.api_key, transport=mock),
                now=clock,
            )

    @pytest.mark.asyncio
    async def test_unknown_store(self, session, fake_nuvemshop):
        with pytest.raises(StoreNotFound):
            await lookup_order(
                session, "nao-existe", "1001", "maria@example.com",
                client_factory=lambda s: fake_nuvemshop,
            )

    @pytest.mark.asyncio
    async def test_upstream_auth_error(self, session, store, fake_nuvemshop):
        fake_nuvemshop.error = UpstreamAuthError("Credenciais inválidas: 401", upstream_status=401)

        with pytest.raises(UpstreamAuthError):
            await lookup_order(
                session, "loja-teste", "1001", "maria@example.com",
                client_factory=lambda s: fake_nuvemshop,
            )
        assert fake_nuvemshop.closed


class TestPortalSubmission:
    """Tests for creating return requests from the portal."""

    @pytest.fixture
    def submit(self, session, fake_nuvemshop, clock):
        async def _submit(**overrides):
            values = {
                "order_number": "1001",
                "customer_email": "maria@example.com",
                "resolution_type": "store_credit",
                "items": [
                    SelectedItem(item_id="1", reason="Tamanho errado"),
                    SelectedItem(item_id="2", quantity=2, reason="Cor diferente"),
                ],
                "customer_postal_code": "04567-000",
            }
            values.update(overrides)
            return await create_return_request(
                session,
                "loja-teste",
                ReturnSubmission(**values),
                client_factory=lambda s: fake_nuvemshop,
                now=clock,
            )

        return _submit

    @pytest.mark.asyncio
    async def test_store_credit_request(self, store, submit):
        """Items totalling 200.00 with a 5% bonus yield 210.00 of credit."""
        return_request = await submit()

        assert return_request.status == "pending"
        assert return_request.store_id == store.id
        assert return_request.total_value == Decimal("200.00")
        assert return_request.credit_value == Decimal("210.00")
        assert return_request.bonus_percent == 5
        assert return_request.customer_name == "Maria Silva"
        assert [item["quantity"] for item in return_request.items] == [1, 2]
        assert return_request.items[0]["reason"] == "Tamanho errado"

    @pytest.mark.asyncio
    async def test_refund_request(self, store, submit):
        return_request = await submit(resolution_type="refund")

        assert return_request.total_value == Decimal("200.00")
        assert return_request.credit_value is None
        assert return_request.bonus_percent == 0

    @pytest.mark.asyncio
    async def test_partial_quantity(self, store, submit):
        return_request = await submit(items=[SelectedItem(item_id="2", quantity=1, reason="Cor")])

        assert return_request.total_value == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_requires_items(self, store, submit):
        with pytest.raises(ValidationError):
            await submit(items=[])

    @pytest.mark.asyncio
    async def test_unknown_item(self, store, submit):
        with pytest.raises(ValidationError):
            await submit(items=[SelectedItem(item_id="99", reason="x")])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, 3])
    async def test_quantity_out_of_range(self, store, submit, quantity):
        with pytest.raises(ValidationError):
            await submit(items=[SelectedItem(item_id="2", quantity=quantity, reason="x")])

    @pytest.mark.asyncio
    async def test_reason_required(self, store, submit):
        with pytest.raises(ValidationError):
            await submit(items=[SelectedItem(item_id="1", reason="  ")])

    @pytest.mark.asyncio
    async def test_reason_optional_when_disabled(self, session, store, submit):
        store.settings.requires_reason = False
        await session.commit()

        return_request = await submit(items=[SelectedItem(item_id="1")])

        assert return_request.items[0]["reason"] is None

    @pytest.mark.asyncio
    async def test_partial_returns_disabled(self, session, store, submit):
        store.settings.allow_partial_returns = False
        await session.commit()

        with pytest.raises(ValidationError):
            await submit(items=[SelectedItem(item_id="1", reason="x")])

        return_request = await submit()
        assert return_request.total_value == Decimal("200.00")

    @pytest.mark.asyncio
    async def test_resolution_not_allowed(self, session, store, submit):
        store.settings.allow_refund = False
        await session.commit()

        with pytest.raises(ValidationError):
            await submit(resolution_type="refund")

    @pytest.mark.asyncio
    async def test_ineligible_order(self, store, submit, sample_order, clock):
        sample_order["created_at"] = (clock() - timedelta(days=10)).isoformat()

        with pytest.raises(ValidationError) as exc_info:
            await submit()

        assert "expirado" in exc_info.value.message
