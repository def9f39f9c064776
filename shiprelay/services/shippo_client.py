"""
Shippo API Client

Thin authenticated wrapper over the Shippo REST API:
- Shipments (create, retrieve with rates)
- Transactions (label purchase)

Every call is a direct passthrough: no retry, no backoff, no caching.
Non-2xx responses raise ShippingProviderError carrying the upstream status
and body; 2xx bodies that fail schema validation raise
MalformedUpstreamResponse.
"""
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from shiprelay.core.config import SHIPPO_DEFAULT_BASE
from shiprelay.core.exceptions import MalformedUpstreamResponse, ShippingProviderError
from shiprelay.schemas.shipping import ShippoShipment, ShippoTransaction

logger = logging.getLogger(__name__)

SHIPMENTS_PATH = "/shipments/"
TRANSACTIONS_PATH = "/transactions/"

ModelT = TypeVar("ModelT", bound=BaseModel)


class ShippoClient:
    """
    Shippo API client authenticated with a ShippoToken.

    Usage:
        client = ShippoClient(api_key=settings.SHIPPO_API_KEY)
        shipment = await client.get_shipment("SHIP_1")
        await client.close()
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = SHIPPO_DEFAULT_BASE,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _make_request(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make authenticated API request and return the decoded JSON body."""
        client = await self._get_http_client()
        url = f"{self.base_url}{path}"

        headers = {
            "Authorization": f"ShippoToken {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = await client.request(method, url, headers=headers, json=data)
        except httpx.RequestError as e:
            logger.error(f"Shippo request failed: {method} {path}: {type(e).__name__}")
            raise ShippingProviderError(
                message=f"Network error contacting Shippo: {type(e).__name__}",
                code="NETWORK_ERROR",
            )

        logger.debug(f"Shippo API {method} {path} -> {response.status_code}")

        if response.is_error:
            body = response.text[:2000]
            logger.error(f"Shippo API error: {method} {path} -> {response.status_code}")
            raise ShippingProviderError(
                message=f"Shippo API returned {response.status_code}",
                upstream_status=response.status_code,
                upstream_body=body,
            )

        try:
            payload = response.json()
        except ValueError:
            raise MalformedUpstreamResponse(
                f"Shippo returned non-JSON body for {method} {path}",
                source="shippo",
            )

        if not isinstance(payload, dict):
            raise MalformedUpstreamResponse(
                f"Shippo returned unexpected JSON type for {method} {path}",
                source="shippo",
            )

        return payload

    @staticmethod
    def _parse(model: Type[ModelT], payload: Dict[str, Any], what: str) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Malformed Shippo {what}: {e.error_count()} validation errors")
            raise MalformedUpstreamResponse(
                f"Shippo {what} did not match expected schema",
                source="shippo",
                details={"errors": [err["msg"] for err in e.errors()][:5]},
            )

    # ==================== Shipments ====================

    async def get_shipment(self, shipment_id: str) -> ShippoShipment:
        """Retrieve a shipment along with its current rates."""
        payload = await self._make_request("GET", f"{SHIPMENTS_PATH}{quote(shipment_id, safe='')}")
        return self._parse(ShippoShipment, payload, "shipment")

    async def create_shipment(
        self,
        address_from: Dict[str, Any],
        address_to: Dict[str, Any],
        parcels: List[Dict[str, Any]],
    ) -> ShippoShipment:
        """Create a shipment synchronously so rates come back in the response."""
        payload = await self._make_request(
            "POST",
            SHIPMENTS_PATH,
            data={
                "address_from": address_from,
                "address_to": address_to,
                "parcels": parcels,
                "async": False,
            },
        )
        shipment = self._parse(ShippoShipment, payload, "shipment")
        logger.info(f"Shippo shipment created: {shipment.object_id} ({len(shipment.rates)} rates)")
        return shipment

    # ==================== Transactions ====================

    async def purchase_label(
        self,
        rate_id: str,
        label_file_type: str = "PDF",
        async_: bool = False,
    ) -> ShippoTransaction:
        """Buy a label for a rate. Synchronous by default so the result is final."""
        payload = await self._make_request(
            "POST",
            TRANSACTIONS_PATH,
            data={
                "rate": rate_id,
                "label_file_type": label_file_type,
                "async": async_,
            },
        )
        return self._parse(ShippoTransaction, payload, "transaction")
