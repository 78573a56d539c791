"""
Flutterwave Client - read-only transaction verification.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from app.config import settings
from app.exceptions import GatewayRejected, GatewayUnreachable
from app.fsm.states import GatewayStatus

logger = logging.getLogger(__name__)


@dataclass
class GatewayVerdict:
    """Normalized answer of the gateway's verify endpoint."""

    confirmed: bool
    status: str
    amount: Decimal
    currency: Optional[str]
    tx_ref: Optional[str]
    transaction_id: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "GatewayVerdict":
        """Build a verdict from the `data` block of a verify response."""
        try:
            amount = Decimal(str(data.get("amount") or 0))
        except InvalidOperation:
            amount = Decimal("0")

        status = str(data.get("status") or "").lower()
        gateway_id = data.get("id")

        return cls(
            confirmed=status == GatewayStatus.SUCCESSFUL.value,
            status=status,
            amount=amount,
            currency=data.get("currency"),
            tx_ref=data.get("tx_ref"),
            transaction_id=str(gateway_id) if gateway_id is not None else None,
            raw=data,
        )


class FlutterwaveClient:
    """Client for the Flutterwave v3 verify endpoints."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key if secret_key is not None else settings.flutterwave_secret_key
        self.base_url = (base_url or settings.flutterwave_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.gateway_timeout_seconds
        self.transport = transport

        self.headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

        if not self.secret_key:
            logger.warning("FLUTTERWAVE_SECRET_KEY not set")

    async def verify(self, transaction_id: str) -> GatewayVerdict:
        """Verify a transaction by the gateway's transaction id."""
        url = f"{self.base_url}/v3/transactions/{quote(str(transaction_id), safe='')}/verify"
        return await self._get_verdict(url, params=None, ident=str(transaction_id))

    async def verify_by_reference(self, tx_ref: str) -> GatewayVerdict:
        """Verify a transaction by the checkout's tx_ref."""
        url = f"{self.base_url}/v3/transactions/verify_by_reference"
        return await self._get_verdict(url, params={"tx_ref": tx_ref}, ident=tx_ref)

    async def _get_verdict(
        self,
        url: str,
        params: Optional[Dict[str, str]],
        ident: str,
    ) -> GatewayVerdict:
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.get(url, params=params, headers=self.headers)
        except httpx.TimeoutException as e:
            logger.error(f"Flutterwave verify timed out for {ident}: {e}")
            raise GatewayUnreachable(
                "Payment gateway timed out",
                {"transactionId": ident},
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Flutterwave verify failed for {ident}: {e}")
            raise GatewayUnreachable(
                "Payment gateway unreachable",
                {"transactionId": ident},
            ) from e

        if response.status_code >= 500:
            logger.error(f"Flutterwave verify HTTP {response.status_code}: {response.text}")
            raise GatewayUnreachable(
                "Failed to verify with Flutterwave",
                {"status": response.status_code, "body": response.text},
            )

        if not response.is_success:
            logger.error(f"Flutterwave verify HTTP {response.status_code}: {response.text}")
            raise GatewayRejected(
                "Failed to verify with Flutterwave",
                {"status": response.status_code, "body": response.text},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise GatewayRejected(
                "Unreadable response from Flutterwave",
                {"body": response.text},
            ) from e

        if not isinstance(payload, dict) or payload.get("status") != "success" or not payload.get("data"):
            raise GatewayRejected(
                "Payment not successful according to gateway",
                {"payload": payload},
                status_code=400,
            )

        verdict = GatewayVerdict.from_data(payload["data"])
        logger.info(
            f"Flutterwave verdict for {ident}: {verdict.status} "
            f"{verdict.amount} {verdict.currency} ref={verdict.tx_ref}"
        )
        return verdict


def get_gateway_client() -> FlutterwaveClient:
    """Dependency returning the configured gateway client."""
    return FlutterwaveClient()
