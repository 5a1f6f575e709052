"""
Custody provider clients for token minting, payouts and webhook signatures.

Two implementations share one interface:
- ``SandboxProvider`` answers synchronously and never leaves the process.
- ``LiveProvider`` calls the custody API over HTTPS with a timeout.

Ledger code only ever talks to ``CustodyProvider``; ``get_custody_provider``
picks the implementation from ``CUSTODY_PROVIDER``.
"""

import hashlib
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)

settings = get_settings()

MINT_ENDPOINT = "/token/mint"
PAYOUT_ENDPOINT = "/payout/initiate"


@dataclass
class MintRequest:
    token_id: str
    asset_ref: str
    owner_id: str
    fraction: Decimal
    investment_amount: int  # minor units


@dataclass
class MintResult:
    """Result of submitting a mint."""

    token_id: str
    status: str  # confirmed, submitted
    tx_hash: Optional[str] = None
    chain: Optional[str] = None
    metadata_hash: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.status == "confirmed" and bool(self.tx_hash)


@dataclass
class PayoutInstruction:
    owner_id: str
    token_id: Optional[str]
    wallet_address: Optional[str]
    amount: int  # minor units


@dataclass
class PayoutRequest:
    reference: str
    asset_ref: str
    currency: str
    distributions: list[PayoutInstruction] = field(default_factory=list)


@dataclass
class PayoutResult:
    """Result of initiating a payout batch."""

    reference: str
    status: str  # completed, pending
    tx_hash: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.status == "completed" and bool(self.tx_hash)


class CustodyError(Exception):
    """Base exception for custody provider errors."""

    def __init__(
        self, message: str, status_code: int = None, response_data: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


class CustodyTimeout(CustodyError):
    """The provider did not answer in time. The outcome is unknown."""


def compute_signature(secret: str, raw_body: bytes) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()


class CustodyProvider(ABC):
    name: str = "abstract"

    def __init__(self, webhook_secret: str = "", chain: Optional[str] = None):
        self.webhook_secret = webhook_secret
        self.chain = chain or settings.CUSTODY_CHAIN

    @abstractmethod
    async def mint_token(self, request: MintRequest) -> MintResult:
        ...

    @abstractmethod
    async def initiate_payout(self, request: PayoutRequest) -> PayoutResult:
        ...

    def verify_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        """Constant-time check of the webhook signature header."""
        if not self.webhook_secret or not signature:
            return False
        expected = compute_signature(self.webhook_secret, raw_body)
        return hmac.compare_digest(expected, signature.strip().lower())


class SandboxProvider(CustodyProvider):
    """In-process provider: every request succeeds immediately.

    Hashes are derived from the request so replays of the same request get
    the same hash.
    """

    name = "sandbox"

    def __init__(
        self,
        webhook_secret: str = "",
        chain: Optional[str] = None,
        bypass_signature: bool = False,
    ):
        super().__init__(webhook_secret=webhook_secret, chain=chain)
        self.bypass_signature = bypass_signature
        if bypass_signature:
            logger.warning(
                "Sandbox custody provider configured to bypass webhook signatures"
            )

    @staticmethod
    def _hash(seed: str) -> str:
        return "0x" + hashlib.sha256(seed.encode()).hexdigest()

    async def mint_token(self, request: MintRequest) -> MintResult:
        return MintResult(
            token_id=request.token_id,
            status="confirmed",
            tx_hash=self._hash(f"mint:{request.token_id}"),
            chain=self.chain,
            metadata_hash=self._hash(f"meta:{request.asset_ref}:{request.token_id}"),
        )

    async def initiate_payout(self, request: PayoutRequest) -> PayoutResult:
        return PayoutResult(
            reference=request.reference,
            status="completed",
            tx_hash=self._hash(f"payout:{request.reference}"),
        )

    def verify_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        if self.bypass_signature:
            logger.warning("Webhook signature check BYPASSED (sandbox mode)")
            return True
        return super().verify_signature(raw_body, signature)


class LiveProvider(CustodyProvider):
    """Async client for the custody API."""

    name = "live"

    def __init__(
        self,
        base_url: str = None,
        api_key: str = None,
        webhook_secret: str = "",
        chain: Optional[str] = None,
        timeout: float = None,
    ):
        super().__init__(webhook_secret=webhook_secret, chain=chain)
        self.base_url = (base_url or settings.CUSTODY_API_BASE).rstrip("/")
        self.api_key = api_key or settings.CUSTODY_API_KEY
        if not self.base_url or not self.api_key:
            raise ValueError("CUSTODY_API_BASE and CUSTODY_API_KEY are required")
        self.timeout = timeout or settings.CUSTODY_TIMEOUT_SECONDS
        self._headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, endpoint: str, json_data: dict) -> dict:
        """Make an async request to the custody API."""
        url = f"{self.base_url}{endpoint}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self._headers,
                    json=json_data,
                )
        except httpx.TimeoutException as e:
            raise CustodyTimeout(f"Custody API timed out: {endpoint}") from e
        except httpx.RequestError as e:
            raise CustodyError(f"Custody API unreachable: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success:
            logger.error(
                "Custody API error: %s - %s", response.status_code, data
            )
            raise CustodyError(
                message=data.get("message", "Unknown custody error"),
                status_code=response.status_code,
                response_data=data,
            )
        return data.get("data", data)

    async def mint_token(self, request: MintRequest) -> MintResult:
        data = await self._request(
            "POST",
            MINT_ENDPOINT,
            {
                "token_id": request.token_id,
                "asset_id": request.asset_ref,
                "owner_id": request.owner_id,
                "fraction": str(request.fraction),
                "investment_amount": request.investment_amount,
                "chain": self.chain,
            },
        )
        return MintResult(
            token_id=data.get("token_id", request.token_id),
            status=data.get("status", "submitted"),
            tx_hash=data.get("tx_hash"),
            chain=data.get("chain", self.chain),
            metadata_hash=data.get("metadata_hash"),
        )

    async def initiate_payout(self, request: PayoutRequest) -> PayoutResult:
        data = await self._request(
            "POST",
            PAYOUT_ENDPOINT,
            {
                "payout_id": request.reference,
                "asset_id": request.asset_ref,
                "currency": request.currency,
                "distributions": [
                    {
                        "owner_id": d.owner_id,
                        "token_id": d.token_id,
                        "wallet_address": d.wallet_address,
                        "amount": d.amount,
                    }
                    for d in request.distributions
                ],
            },
        )
        return PayoutResult(
            reference=request.reference,
            status=data.get("status", "pending"),
            tx_hash=data.get("tx_hash"),
        )


def get_custody_provider() -> CustodyProvider:
    """Provider selected by ``CUSTODY_PROVIDER``. Usable as a FastAPI dependency."""
    if settings.CUSTODY_PROVIDER == "live":
        return LiveProvider(webhook_secret=settings.CUSTODY_WEBHOOK_SECRET)
    return SandboxProvider(
        webhook_secret=settings.CUSTODY_WEBHOOK_SECRET,
        bypass_signature=settings.CUSTODY_WEBHOOK_BYPASS_SIGNATURE,
    )
