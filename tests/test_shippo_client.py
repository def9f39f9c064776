import json

import httpx
import pytest

from shiprelay.core.exceptions import MalformedUpstreamResponse, ShippingProviderError
from shiprelay.services.shippo_client import ShippoClient

from conftest import SHIPPO_TEST_KEY


def make_client(handler) -> ShippoClient:
    transport = httpx.MockTransport(handler)
    return ShippoClient(
        api_key=SHIPPO_TEST_KEY,
        base_url="https://api.goshippo.com",
        http_client=httpx.AsyncClient(transport=transport),
    )


@pytest.mark.asyncio
async def test_get_shipment_sends_token_and_parses_rates(shipment_payload):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json=shipment_payload)

    client = make_client(handler)
    shipment = await client.get_shipment("SHIP_1")
    await client.close()

    assert seen["method"] == "GET"
    assert seen["url"] == "https://api.goshippo.com/shipments/SHIP_1"
    assert seen["auth"] == f"ShippoToken {SHIPPO_TEST_KEY}"
    assert shipment.object_id == "SHIP_1"
    assert [r.object_id for r in shipment.rates] == ["RATE_A", "RATE_B"]
    assert str(shipment.rates[0].amount) == "12.50"


@pytest.mark.asyncio
async def test_purchase_label_posts_synchronous_pdf_request(transaction_payload):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        seen["content_type"] = request.headers.get("Content-Type")
        return httpx.Response(201, json=transaction_payload)

    client = make_client(handler)
    transaction = await client.purchase_label("RATE_A")
    await client.close()

    assert seen["url"] == "https://api.goshippo.com/transactions/"
    assert seen["body"] == {"rate": "RATE_A", "label_file_type": "PDF", "async": False}
    assert seen["content_type"] == "application/json"
    assert transaction.succeeded
    assert transaction.tracking_number == "1Z999AA10123456784"


@pytest.mark.asyncio
async def test_create_shipment_is_synchronous(shipment_payload):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=shipment_payload)

    client = make_client(handler)
    shipment = await client.create_shipment({"zip": "10001"}, {"zip": "94105"}, [{"weight": "1"}])
    await client.close()

    assert seen["body"]["async"] is False
    assert seen["body"]["parcels"] == [{"weight": "1"}]
    assert shipment.object_id == "SHIP_1"


@pytest.mark.asyncio
async def test_non_2xx_raises_with_upstream_status_and_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"detail": "Not found."})

    client = make_client(handler)
    with pytest.raises(ShippingProviderError) as exc_info:
        await client.get_shipment("MISSING")
    await client.close()

    assert exc_info.value.upstream_status == 404
    assert "Not found." in exc_info.value.upstream_body


@pytest.mark.asyncio
async def test_network_error_raises_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(ShippingProviderError) as exc_info:
        await client.get_shipment("SHIP_1")
    await client.close()

    assert exc_info.value.code == "NETWORK_ERROR"
    assert exc_info.value.upstream_status is None


@pytest.mark.asyncio
async def test_schema_mismatch_is_malformed_not_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        # rate missing servicelevel and amount
        return httpx.Response(200, json={"object_id": "SHIP_1", "rates": [{"object_id": "RATE_A", "provider": "UPS"}]})

    client = make_client(handler)
    with pytest.raises(MalformedUpstreamResponse):
        await client.get_shipment("SHIP_1")
    await client.close()


@pytest.mark.asyncio
async def test_non_json_body_is_malformed():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    client = make_client(handler)
    with pytest.raises(MalformedUpstreamResponse):
        await client.get_shipment("SHIP_1")
    await client.close()


@pytest.mark.asyncio
async def test_no_retry_on_server_error():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(503, text="upstream unavailable")

    client = make_client(handler)
    with pytest.raises(ShippingProviderError):
        await client.purchase_label("RATE_A")
    await client.close()

    assert calls == 1


@pytest.mark.asyncio
async def test_shipment_id_is_path_encoded(shipment_payload):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["raw_path"] = request.url.raw_path
        seen["query"] = request.url.query
        return httpx.Response(200, json=shipment_payload)

    client = make_client(handler)
    await client.get_shipment("SHIP_1?x=1#frag")
    await client.close()

    assert seen["raw_path"] == b"/shipments/SHIP_1%3Fx%3D1%23frag"
    assert seen["query"] == b""
