"""Integration tests for member-facing gift card endpoints."""

import pytest
from tests.factories import agent_headers, auth_headers, unique_id

USER = "user-1"


def _user_headers(user_id: str = USER) -> dict:
    return auth_headers(user_id, email=f"{user_id}@example.com")


async def _purchase(client, *, agent="agent-1", amount="50.00", **extra) -> dict:
    body = {
        "amount": amount,
        "payment_method": "card",
        "payment_reference": unique_id("pay"),
        **extra,
    }
    response = await client.post(
        "/gift-cards/purchase", json=body, headers=agent_headers(agent)
    )
    assert response.status_code == 201, response.text
    return response.json()


# ---------------------------------------------------------------------------
# Purchase
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(giftcard_client):
    response = await giftcard_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_purchase_gift_card(giftcard_client):
    """POST /gift-cards/purchase — booking agent issues an active card."""
    data = await _purchase(giftcard_client, message="Welcome", recipient_id=USER)

    assert data["code"].startswith("GC-")
    assert data["amount"] == "50.00"
    assert data["remaining_balance"] == "50.00"
    assert data["currency"] == "USD"
    assert data["status"] == "active"
    assert data["issuer_type"] == "booking_agent"
    assert data["recipient_id"] == USER
    assert data["message"] == "Welcome"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_purchase_requires_booking_agent(giftcard_client):
    response = await giftcard_client.post(
        "/gift-cards/purchase",
        json={"amount": "10.00", "payment_method": "card", "payment_reference": "p1"},
        headers=_user_headers(),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_requests_without_token_are_rejected(giftcard_client):
    response = await giftcard_client.get("/gift-cards/balance")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize("amount", ["-5.00", "0", "10.001"])
async def test_purchase_validates_amount(giftcard_client, amount):
    response = await giftcard_client.post(
        "/gift-cards/purchase",
        json={"amount": amount, "payment_method": "card", "payment_reference": "p1"},
        headers=agent_headers(),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_purchase_over_monthly_limit(giftcard_client):
    """POST /gift-cards/purchase — 400 with limit context once the cap is hit."""
    await _purchase(giftcard_client, amount="100.00")

    response = await giftcard_client.post(
        "/gift-cards/purchase",
        json={"amount": "30.00", "payment_method": "card", "payment_reference": "p2"},
        headers=agent_headers(),
    )

    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["error"] == "monthly_limit_exceeded"
    assert data["current_month_total"] == "100.00"
    assert data["limit"] == "125.00"
    assert data["remaining"] == "25.00"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_monthly_limit_endpoint(giftcard_client):
    """GET /gift-cards/monthly-limit — current usage for the calling agent."""
    await _purchase(giftcard_client, amount="50.00")

    response = await giftcard_client.get(
        "/gift-cards/monthly-limit", headers=agent_headers()
    )

    assert response.status_code == 200
    data = response.json()
    assert data["is_admin"] is False
    assert data["current_month_total"] == "50.00"
    assert data["limit_amount"] == "125.00"
    assert data["remaining_amount"] == "75.00"
    assert data["within_limit"] is True
    assert data["percent_used"] == "40.00"


# ---------------------------------------------------------------------------
# Award
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_award_gift_card(giftcard_client):
    card = await _purchase(giftcard_client)
    body = {"gift_card_id": card["id"], "recipient_id": USER, "recipient_type": "user"}

    response = await giftcard_client.post(
        "/gift-cards/award", json=body, headers=agent_headers()
    )
    assert response.status_code == 200, response.text
    assert response.json()["recipient_id"] == USER
    assert response.json()["awarded_at"] is not None

    again = await giftcard_client.post(
        "/gift-cards/award", json=body, headers=agent_headers()
    )
    assert again.status_code == 409
    assert again.json()["error"] == "already_awarded"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_award_someone_elses_card_is_not_found(giftcard_client):
    card = await _purchase(giftcard_client, agent="agent-1")

    response = await giftcard_client.post(
        "/gift-cards/award",
        json={"gift_card_id": card["id"], "recipient_id": USER},
        headers=agent_headers("agent-2"),
    )

    assert response.status_code == 404
    assert response.json()["error"] == "gift_card_not_found"


# ---------------------------------------------------------------------------
# Redeem
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_redeem_gift_card(giftcard_client):
    """POST /gift-cards/redeem — recipient spends part of the balance."""
    card = await _purchase(giftcard_client, recipient_id=USER)

    response = await giftcard_client.post(
        "/gift-cards/redeem",
        json={
            "code": card["code"].lower(),
            "amount": "20.00",
            "service_type": "booking",
            "service_reference": "booking-7",
        },
        headers=_user_headers(),
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["code"] == card["code"]
    assert data["amount"] == "20.00"
    assert data["remaining_balance"] == "30.00"
    assert data["status"] == "active"
    assert data["service_type"] == "booking"
    assert data["service_reference"] == "booking-7"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_redeem_insufficient_funds(giftcard_client):
    card = await _purchase(giftcard_client, amount="10.00", recipient_id=USER)

    response = await giftcard_client.post(
        "/gift-cards/redeem",
        json={"code": card["code"], "amount": "10.01"},
        headers=_user_headers(),
    )

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "insufficient_funds"
    assert data["requested"] == "10.01"
    assert data["available"] == "10.00"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_redeem_by_non_recipient_is_unauthorized(giftcard_client):
    card = await _purchase(giftcard_client, recipient_id=USER)

    response = await giftcard_client.post(
        "/gift-cards/redeem",
        json={"code": card["code"], "amount": "1.00"},
        headers=_user_headers("user-2"),
    )

    assert response.status_code == 403
    assert response.json()["error"] == "unauthorized"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_redeem_unknown_code(giftcard_client):
    response = await giftcard_client.post(
        "/gift-cards/redeem",
        json={"code": "GC-000000-000000", "amount": "1.00"},
        headers=_user_headers(),
    )
    assert response.status_code == 404


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_balance_reflects_redemption(giftcard_client):
    card = await _purchase(giftcard_client, recipient_id=USER)
    await giftcard_client.post(
        "/gift-cards/redeem",
        json={"code": card["code"], "amount": "12.50"},
        headers=_user_headers(),
    )

    response = await giftcard_client.get("/gift-cards/balance", headers=_user_headers())

    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == USER
    assert data["balances"] == [
        {"currency": "USD", "balance": "37.50", "card_count": 1}
    ]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_my_cards(giftcard_client):
    card = await _purchase(giftcard_client, recipient_id=USER)

    agent_view = await giftcard_client.get("/gift-cards/my-cards", headers=agent_headers())
    user_view = await giftcard_client.get("/gift-cards/my-cards", headers=_user_headers())

    assert [c["id"] for c in agent_view.json()["purchased"]] == [card["id"]]
    assert agent_view.json()["received"] == []
    assert [c["id"] for c in user_view.json()["received"]] == [card["id"]]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_details_hidden_from_strangers(giftcard_client):
    card = await _purchase(giftcard_client, recipient_id=USER)

    mine = await giftcard_client.get(
        f"/gift-cards/details/{card['code']}", headers=_user_headers()
    )
    theirs = await giftcard_client.get(
        f"/gift-cards/details/{card['code']}", headers=_user_headers("user-2")
    )

    assert mine.status_code == 200
    assert mine.json()["id"] == card["id"]
    assert theirs.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_transactions_and_history(giftcard_client):
    card = await _purchase(giftcard_client, recipient_id=USER)
    await giftcard_client.post(
        "/gift-cards/redeem",
        json={"code": card["code"], "amount": "5.00"},
        headers=_user_headers(),
    )

    txns = await giftcard_client.get(
        f"/gift-cards/transactions/{card['id']}", headers=_user_headers()
    )
    assert txns.status_code == 200
    data = txns.json()
    assert data["total"] == 3
    assert [t["transaction_type"] for t in data["transactions"]] == [
        "redeem",
        "award",
        "purchase",
    ]

    stranger = await giftcard_client.get(
        f"/gift-cards/transactions/{card['id']}", headers=_user_headers("user-2")
    )
    assert stranger.status_code == 403

    history = await giftcard_client.get("/gift-cards/history", headers=_user_headers())
    assert history.status_code == 200
    summary = history.json()["summary"]
    assert summary["total_received"] == "50.00"
    assert summary["total_redeemed"] == "5.00"
    assert summary["current_balance"] == "45.00"
    assert summary["gift_cards_count"] == 1
    assert history.json()["history"][0]["gift_card"]["code"] == card["code"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_agent_ledger(giftcard_client):
    await _purchase(giftcard_client, amount="20.00")
    await _purchase(giftcard_client, amount="30.00", recipient_id=USER)

    response = await giftcard_client.get("/gift-cards/ledger", headers=agent_headers())

    assert response.status_code == 200
    data = response.json()
    assert data["agent_id"] == "agent-1"
    assert len(data["ledger"]) == 2
    assert data["summary"]["total_cards"] == 2
    assert data["summary"]["active_cards"] == 2
    assert data["summary"]["total_amount_purchased"] == "50.00"
    assert data["summary"]["total_amount_awarded"] == "30.00"

    forbidden = await giftcard_client.get("/gift-cards/ledger", headers=_user_headers())
    assert forbidden.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_activity(giftcard_client):
    card = await _purchase(giftcard_client, recipient_id=USER)
    await giftcard_client.post(
        "/gift-cards/redeem",
        json={"code": card["code"], "amount": "5.00"},
        headers=_user_headers(),
    )

    response = await giftcard_client.get("/gift-cards/activity", headers=_user_headers())

    assert response.status_code == 200
    data = response.json()
    assert data["user_type"] == "user"
    assert data["transactions"][0]["transaction_type"] == "redeem"
    assert data["transactions"][0]["gift_card_code"] == card["code"]
