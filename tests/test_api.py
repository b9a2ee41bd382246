import uuid
import pytest

from tests.seed_data import ADDRESS, auth_headers

url_prefix = "/api/v1"


def order_body(market, product, quantity, **extra):
    body = {
        "shop_id": str(market.shop.public_id),
        "items": [{"product_id": str(product.public_id), "quantity": quantity}],
        "shipping_address": ADDRESS,
    }
    body.update(extra)
    return body


async def place_order(ac_client, market, product, quantity):
    r = await ac_client.post(f"{url_prefix}/orders", json=order_body(market, product, quantity),
                             headers=auth_headers(market.customer))
    assert r.status_code == 201, r.text
    return r.json()["data"]["order"]


def error_code(response):
    return response.json()["error"]["code"]


@pytest.mark.asyncio
async def test_health_needs_no_token(ac_client):
    r = await ac_client.get(f"{url_prefix}/health", headers={"X-Request-ID": "req-123"})

    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["data"] == {"status": "healthy"}
    assert body["request_id"] == "req-123"
    assert r.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_requests_without_valid_token_are_rejected(ac_client, market):
    r = await ac_client.get(f"{url_prefix}/orders")
    assert r.status_code == 401
    assert error_code(r) == "INVALID_AUTH"

    r = await ac_client.get(f"{url_prefix}/orders", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401

    ghost = type("Ghost", (), {"public_id": uuid.uuid4(), "role": "customer"})
    r = await ac_client.get(f"{url_prefix}/orders", headers=auth_headers(ghost))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_order_to_payout_over_http(ac_client, market):
    order = await place_order(ac_client, market, market.mango, 2)
    order_url = f"{url_prefix}/orders/{order['public_id']}"

    r = await ac_client.put(f"{order_url}/status", json={"status": "confirmed"}, headers=auth_headers(market.seller))
    assert r.status_code == 200, r.text
    assert r.json()["data"]["order"]["status"] == "confirmed"

    r = await ac_client.get(f"{url_prefix}/orders/available-for-delivery", headers=auth_headers(market.courier))
    assert [o["public_id"] for o in r.json()["data"]["items"]] == [order["public_id"]]

    r = await ac_client.put(f"{order_url}/accept-delivery", headers=auth_headers(market.courier))
    assert r.status_code == 200, r.text

    r = await ac_client.put(f"{order_url}/accept-delivery", headers=auth_headers(market.other_courier))
    assert r.status_code == 409
    assert error_code(r) == "ALREADY_ASSIGNED"

    for step in ("picked_up", "out_for_delivery", "delivered"):
        r = await ac_client.put(f"{order_url}/update-delivery-status", json={"delivery_status": step},
                                headers=auth_headers(market.courier))
        assert r.status_code == 200, r.text

    data = r.json()["data"]
    assert data["order"]["status"] == "delivered"
    assert data["order"]["payment_status"] == "paid"
    assert data["settlement"]["split"]["seller"] == 720

    r = await ac_client.get(f"{url_prefix}/wallets/balance", headers=auth_headers(market.seller))
    assert r.json()["data"]["wallet"]["balance"] == 720

    r = await ac_client.get(f"{url_prefix}/wallets/transactions", params={"type": "credit"},
                            headers=auth_headers(market.seller))
    (txn,) = r.json()["data"]["items"]
    assert txn["revenue_type"] == "seller_share"
    assert txn["reference"] == f"REV-{order['order_number']}-SELLER"

    r = await ac_client.post(f"{url_prefix}/payouts/request",
                             json={"amount": 500, "payout_method": "upi", "upi_id": "greengrocers@okbank"},
                             headers=auth_headers(market.seller))
    assert r.status_code == 201, r.text
    payout = r.json()["data"]["payout"]

    approve_url = f"{url_prefix}/payouts/{payout['public_id']}/approve"
    r = await ac_client.put(approve_url, headers=auth_headers(market.seller))
    assert r.status_code == 403

    r = await ac_client.put(approve_url, json={"transaction_reference": "UTR42"}, headers=auth_headers(market.admin))
    assert r.status_code == 200, r.text
    assert r.json()["data"]["payout"]["status"] == "completed"

    r = await ac_client.get(f"{url_prefix}/admin/payouts", params={"status": "completed"},
                            headers=auth_headers(market.admin))
    assert r.json()["data"]["pagination"]["total"] == 1

    r = await ac_client.get(f"{url_prefix}/admin/wallets/{market.seller.public_id}", headers=auth_headers(market.admin))
    wallet = r.json()["data"]["wallet"]
    assert wallet["balance"] == 220
    assert wallet["total_withdrawn"] == 500

    r = await ac_client.post(f"{order_url}/distribute-revenue", headers=auth_headers(market.admin))
    assert r.status_code == 200
    assert r.json()["data"]["already_distributed"] is True


@pytest.mark.asyncio
async def test_domain_errors_map_to_status_codes(ac_client, market):
    r = await ac_client.post(f"{url_prefix}/orders", json=order_body(market, market.honey, 5),
                             headers=auth_headers(market.customer))
    assert r.status_code == 409
    assert error_code(r) == "OUT_OF_STOCK"

    r = await ac_client.post(f"{url_prefix}/orders", json=order_body(market, market.mango, 1),
                             headers=auth_headers(market.courier))
    assert r.status_code == 403
    assert error_code(r) == "FORBIDDEN"

    r = await ac_client.get(f"{url_prefix}/orders/{uuid.uuid4()}", headers=auth_headers(market.admin))
    assert r.status_code == 404
    assert error_code(r) == "NOT_FOUND"

    order = await place_order(ac_client, market, market.mango, 1)
    r = await ac_client.put(f"{url_prefix}/orders/{order['public_id']}/status", json={"status": "delivered"},
                            headers=auth_headers(market.seller))
    assert r.status_code == 409
    assert error_code(r) == "INVALID_TRANSITION"

    r = await ac_client.post(f"{url_prefix}/payouts/request", json={"amount": 500, "payout_method": "upi",
                                                                    "upi_id": "x@okbank"},
                             headers=auth_headers(market.seller))
    assert r.status_code == 400
    assert error_code(r) == "INSUFFICIENT_BALANCE"

    r = await ac_client.get(f"{url_prefix}/admin/payouts", headers=auth_headers(market.seller))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_malformed_bodies_are_rejected(ac_client, market):
    r = await ac_client.post(f"{url_prefix}/orders", json=order_body(market, market.mango, 0),
                             headers=auth_headers(market.customer))
    assert r.status_code == 422
    assert error_code(r) == "UNPROCESSABLE_ENTITY"

    r = await ac_client.post(f"{url_prefix}/orders", json=order_body(market, market.mango, 1, coupon="FREE"),
                             headers=auth_headers(market.customer))
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_customer_cancels_over_http(ac_client, market):
    order = await place_order(ac_client, market, market.mango, 3)

    r = await ac_client.put(f"{url_prefix}/orders/{order['public_id']}/cancel",
                            json={"cancellation_reason": "ordered twice"}, headers=auth_headers(market.customer))
    assert r.status_code == 200, r.text
    cancelled = r.json()["data"]["order"]
    assert cancelled["status"] == "cancelled"
    assert cancelled["cancellation_reason"] == "ordered twice"

    r = await ac_client.get(f"{url_prefix}/orders", params={"status": "cancelled"},
                            headers=auth_headers(market.customer))
    assert r.json()["data"]["pagination"]["total"] == 1
