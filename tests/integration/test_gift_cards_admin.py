"""Integration tests for admin gift card endpoints."""

import pytest
from libs.common.datetime_utils import month_key, utc_now
from tests.factories import admin_headers, agent_headers, auth_headers, unique_id

USER = "user-1"


async def _admin_create(client, amount="50.00", **extra) -> dict:
    response = await client.post(
        "/admin/gift-cards/create",
        json={"amount": amount, **extra},
        headers=admin_headers(),
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _redeem(client, code, amount, user_id=USER):
    return await client.post(
        "/gift-cards/redeem",
        json={"code": code, "amount": amount},
        headers=auth_headers(user_id),
    )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_create_skips_monthly_limit(giftcard_client):
    data = await _admin_create(giftcard_client, amount="900.00", recipient_id=USER)

    assert data["amount"] == "900.00"
    assert data["issuer_type"] == "admin_agent"
    assert data["issuer_id"] == "admin-1"
    assert data["purchase_payment_method"] == "admin_created"
    assert data["recipient_id"] == USER


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_routes_require_operator(giftcard_client):
    response = await giftcard_client.post(
        "/admin/gift-cards/create", json={"amount": "10.00"}, headers=agent_headers()
    )
    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_suspend_blocks_redemption_until_unsuspended(giftcard_client):
    card = await _admin_create(giftcard_client, recipient_id=USER)

    suspended = await giftcard_client.post(
        f"/admin/gift-cards/suspend/{card['id']}",
        json={"reason": "Chargeback"},
        headers=admin_headers(),
    )
    assert suspended.status_code == 200
    assert suspended.json()["status"] == "suspended"
    assert suspended.json()["suspension_reason"] == "Chargeback"

    blocked = await _redeem(giftcard_client, card["code"], "1.00")
    assert blocked.status_code == 409
    assert blocked.json()["error"] == "gift_card_not_active"

    restored = await giftcard_client.post(
        f"/admin/gift-cards/unsuspend/{card['id']}", headers=admin_headers()
    )
    assert restored.status_code == 200
    assert restored.json()["status"] == "active"

    allowed = await _redeem(giftcard_client, card["code"], "1.00")
    assert allowed.status_code == 200


@pytest.mark.asyncio
@pytest.mark.integration
async def test_suspend_requires_reason(giftcard_client):
    card = await _admin_create(giftcard_client)

    response = await giftcard_client.post(
        f"/admin/gift-cards/suspend/{card['id']}", json={}, headers=admin_headers()
    )

    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cancel_is_terminal(giftcard_client):
    card = await _admin_create(giftcard_client)

    cancelled = await giftcard_client.delete(
        f"/admin/gift-cards/{card['id']}",
        params={"reason": "Duplicate"},
        headers=admin_headers(),
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    edit = await giftcard_client.put(
        f"/admin/gift-cards/{card['id']}/edit",
        json={"amount": "10.00"},
        headers=admin_headers(),
    )
    assert edit.status_code == 409
    assert edit.json()["error"] == "immutable_state"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_edit_amount_keeps_spent_value(giftcard_client):
    card = await _admin_create(giftcard_client, amount="100.00", recipient_id=USER)
    await _redeem(giftcard_client, card["code"], "40.00")

    response = await giftcard_client.put(
        f"/admin/gift-cards/{card['id']}/edit",
        json={"amount": "50.00", "reason": "Partial refund"},
        headers=admin_headers(),
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["amount"] == "50.00"
    assert data["remaining_balance"] == "10.00"

    txns = await giftcard_client.get(
        f"/gift-cards/transactions/{card['id']}", headers=admin_headers()
    )
    latest = txns.json()["transactions"][0]
    assert latest["transaction_type"] == "admin_edit"
    assert latest["amount"] == "0.00"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_edit_reassigns_recipient(giftcard_client):
    card = await _admin_create(giftcard_client)

    response = await giftcard_client.put(
        f"/admin/gift-cards/{card['id']}/edit",
        json={"recipient_id": "band-4", "recipient_type": "band"},
        headers=admin_headers(),
    )

    assert response.status_code == 200
    assert response.json()["recipient_id"] == "band-4"
    assert response.json()["recipient_type"] == "band"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_notes(giftcard_client):
    card = await _admin_create(giftcard_client)

    response = await giftcard_client.put(
        f"/admin/gift-cards/{card['id']}/notes",
        json={"notes": "VIP customer"},
        headers=admin_headers(),
    )

    assert response.status_code == 200
    assert response.json()["admin_notes"] == "VIP customer"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_search(giftcard_client):
    first = await _admin_create(giftcard_client, recipient_email="findme@example.com")
    await _admin_create(giftcard_client)

    by_email = await giftcard_client.get(
        "/admin/gift-cards/search", params={"query": "findme"}, headers=admin_headers()
    )
    assert by_email.status_code == 200
    assert [c["id"] for c in by_email.json()] == [first["id"]]

    by_status = await giftcard_client.get(
        "/admin/gift-cards/search", params={"status": "suspended"}, headers=admin_headers()
    )
    assert by_status.json() == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_stats_and_cards_by_agent(giftcard_client):
    for amount in ("40.00", "35.00"):
        response = await giftcard_client.post(
            "/gift-cards/purchase",
            json={
                "amount": amount,
                "payment_method": "card",
                "payment_reference": unique_id("pay"),
            },
            headers=agent_headers("agent-7"),
        )
        assert response.status_code == 201

    stats = await giftcard_client.get(
        "/admin/gift-cards/stats-by-agent", headers=admin_headers()
    )
    assert stats.status_code == 200, stats.text
    data = stats.json()
    assert data["total_agents"] == 1
    assert data["total_cards"] == 2
    assert data["agents"][0]["agent_id"] == "agent-7"

    by_agent = await giftcard_client.get(
        "/admin/gift-cards/by-agent/agent-7", headers=admin_headers()
    )
    assert by_agent.status_code == 200
    cards = by_agent.json()
    assert len(cards["gift_cards"]) == 2
    assert cards["monthly_limit"]["current_month_total"] == "75.00"
    assert cards["monthly_limit"]["remaining_amount"] == "50.00"
    assert cards["monthly_stats"] == [
        {
            "month": month_key(utc_now(), "UTC"),
            "currency": "USD",
            "active_agents": 1,
            "total_cards": 2,
            "total_amount": "75.00",
            "active_cards": 2,
            "active_balance": "75.00",
            "redeemed_cards": 0,
            "suspended_cards": 0,
            "expired_cards": 0,
            "cancelled_cards": 0,
        }
    ]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_set_monthly_limit(giftcard_client):
    response = await giftcard_client.put(
        "/admin/gift-cards/limits/agent-9",
        json={"monthly_limit": "0", "reason": "Corporate partner"},
        headers=admin_headers(),
    )
    assert response.status_code == 200, response.text
    assert response.json()["is_unlimited"] is True

    big = await giftcard_client.post(
        "/gift-cards/purchase",
        json={"amount": "800.00", "payment_method": "card", "payment_reference": "p9"},
        headers=agent_headers("agent-9"),
    )
    assert big.status_code == 201

    capped = await giftcard_client.put(
        "/admin/gift-cards/limits/agent-9",
        json={"monthly_limit": "900.00"},
        headers=admin_headers(),
    )
    assert capped.json()["monthly_limit"] == "900.00"
    assert capped.json()["is_unlimited"] is False


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reconcile(giftcard_client):
    card = await _admin_create(giftcard_client, amount="30.00", recipient_id=USER)
    await _redeem(giftcard_client, card["code"], "12.00")

    response = await giftcard_client.get(
        f"/admin/gift-cards/{card['id']}/reconcile", headers=admin_headers()
    )

    assert response.status_code == 200
    data = response.json()
    assert data["balanced"] is True
    assert data["total_redeemed"] == "12.00"
    assert data["expected_remaining"] == "18.00"
    assert data["issues"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_monthly_summary(giftcard_client):
    for agent in ("agent-1", "agent-2"):
        response = await giftcard_client.post(
            "/gift-cards/purchase",
            json={
                "amount": "25.00",
                "payment_method": "card",
                "payment_reference": unique_id("pay"),
            },
            headers=agent_headers(agent),
        )
        assert response.status_code == 201
    await _admin_create(giftcard_client, amount="400.00")

    response = await giftcard_client.get(
        "/admin/gift-cards/monthly-summary", headers=admin_headers()
    )

    assert response.status_code == 200, response.text
    [month] = response.json()["monthly_summary"]
    assert month["month"] == month_key(utc_now(), "UTC")
    assert month["active_agents"] == 2
    assert month["total_cards"] == 2
    assert month["total_amount"] == "50.00"

    forbidden = await giftcard_client.get(
        "/admin/gift-cards/monthly-summary", headers=agent_headers()
    )
    assert forbidden.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_edit_with_null_recipient_unassigns(giftcard_client):
    card = await _admin_create(giftcard_client, recipient_id=USER)

    response = await giftcard_client.put(
        f"/admin/gift-cards/{card['id']}/edit",
        json={"recipient_id": None, "reason": "Issued to the wrong user"},
        headers=admin_headers(),
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["recipient_id"] is None
    assert data["recipient_type"] is None
    assert data["awarded_at"] is None
    assert data["awarded_by"] is None

    blocked = await _redeem(giftcard_client, card["code"], "1.00")
    assert blocked.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_monthly_limit_in_another_currency_leaves_default(giftcard_client):
    response = await giftcard_client.put(
        "/admin/gift-cards/limits/agent-5",
        json={"monthly_limit": "50.00", "currency": "EUR"},
        headers=admin_headers(),
    )
    assert response.status_code == 200

    usd = await giftcard_client.post(
        "/gift-cards/purchase",
        json={"amount": "100.00", "payment_method": "card", "payment_reference": "p5"},
        headers=agent_headers("agent-5"),
    )
    assert usd.status_code == 201, usd.text
