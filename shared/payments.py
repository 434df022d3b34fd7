from __future__ import annotations

import asyncio
import base64
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from shared import logging_utils
from shared.errors import AccessGrantError, MediaGateError
from shared.generation import GenerationClient

_LOG = logging_utils.get_logger("payments")

# service entry of the agent descriptor that normally carries the credit attributes
_CREDITS_SERVICE_INDEX = 2


class PaymentsBackend(Protocol):
    def get_plan_balance(self, plan_did: str) -> Any: ...

    def get_asset_ddo(self, did: str) -> Any: ...

    def order_plan(self, plan_did: str) -> Any: ...

    def get_service_access_config(self, agent_did: str) -> Any: ...


@dataclass(frozen=True)
class AccessGrant:
    base_uri: str
    token: str
    expires_at: float | None = None

    def valid_at(self, now: float, skew: float = 0.0) -> bool:
        return self.expires_at is not None and now < self.expires_at - skew


@dataclass(frozen=True)
class PurchaseOutcome:
    success: bool
    message: str


def field_of(obj: Any, *names: str) -> Any:
    """Read the first present field from an SDK object or a plain dict."""
    if obj is None:
        return None
    for name in names:
        value = obj.get(name) if isinstance(obj, dict) else getattr(obj, name, None)
        if value is not None:
            return value
    return None


def min_credits_required(ddo: Any) -> float:
    ordered = list(field_of(ddo, "service", "services") or [])
    if len(ordered) > _CREDITS_SERVICE_INDEX:
        ordered.insert(0, ordered.pop(_CREDITS_SERVICE_INDEX))
    for svc in ordered:
        main = field_of(field_of(svc, "attributes"), "main")
        nft = field_of(main, "nftAttributes", "nft_attributes")
        value = field_of(nft, "minCreditsRequired", "min_credits_required")
        if value:
            return float(value)
    return 0.0


def jwt_expiry(token: str | None) -> float | None:
    if not token:
        return None
    parts = token.split(".")
    if len(parts) < 2:
        return None
    try:
        payload_b64 = parts[1] + "=" * ((4 - len(parts[1]) % 4) % 4)
        payload = json.loads(base64.urlsafe_b64decode(payload_b64.encode("utf-8")))
    except (ValueError, UnicodeDecodeError):
        return None
    exp = payload.get("exp") if isinstance(payload, dict) else None
    return float(exp) if isinstance(exp, (int, float)) else None


class AccessBroker:
    """Single point of contact with the payment service.

    Balance checks and purchases are fail-soft and always return a value.
    Access grants are fail-hard: without a token there is nothing to call
    the generation backend with, so ``get_access`` raises ``AccessGrantError``.
    """

    GRANT_SKEW_SECONDS = 30.0

    def __init__(
        self,
        payments: PaymentsBackend,
        *,
        insecure_proxy_scheme: bool = False,
        grant_cache: bool = False,
        timeout: float = 60.0,
        max_retries: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        self.payments = payments
        self.insecure_proxy_scheme = insecure_proxy_scheme
        self.grant_cache = grant_cache
        self.timeout = timeout
        self.max_retries = max_retries
        self._clock = clock
        self._grants: dict[str, AccessGrant] = {}

    async def _balance_snapshot(self, plan_did: str, agent_did: str) -> tuple[float, float]:
        balance_result, ddo = await asyncio.gather(
            asyncio.to_thread(self.payments.get_plan_balance, plan_did),
            asyncio.to_thread(self.payments.get_asset_ddo, agent_did),
        )
        balance = field_of(balance_result, "balance")
        if balance is None:
            raise ValueError("balance missing from plan balance response")
        return float(balance), min_credits_required(ddo)

    async def check_balance(self, plan_did: str, agent_did: str) -> bool:
        try:
            available, required = await self._balance_snapshot(plan_did, agent_did)
        except Exception as exc:  # noqa: BLE001
            logging_utils.warning(_LOG, "balance check failed, treating as insufficient", plan=plan_did, error=str(exc))
            return False
        logging_utils.info(_LOG, "balance checked", plan=plan_did, available=available, required=required)
        return available >= required

    async def order_plan(self, plan_did: str) -> PurchaseOutcome:
        try:
            result = await asyncio.to_thread(self.payments.order_plan, plan_did)
        except Exception as exc:  # noqa: BLE001
            logging_utils.error(_LOG, "plan order failed", plan=plan_did, error=str(exc))
            return PurchaseOutcome(False, str(exc))
        if not result or not field_of(result, "success"):
            return PurchaseOutcome(False, "Failed to create order")
        agreement_id = field_of(result, "agreementId", "agreement_id")
        logging_utils.info(_LOG, "plan ordered", plan=plan_did, agreement=agreement_id)
        return PurchaseOutcome(True, f"Plan ordered successfully. Agreement ID: {agreement_id}")

    def _normalize_base_uri(self, uri: str) -> str:
        if self.insecure_proxy_scheme and uri.startswith("https://"):
            return "http://" + uri[len("https://"):]
        return uri

    async def _fetch_grant(self, agent_did: str) -> AccessGrant:
        try:
            config = await asyncio.to_thread(self.payments.get_service_access_config, agent_did)
        except MediaGateError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise AccessGrantError(f"Failed to get service access configuration: {exc}") from exc

        token = field_of(config, "accessToken", "access_token")
        base_uri = field_of(config, "neverminedProxyUri", "nevermined_proxy_uri", "baseUri")
        if not token:
            raise AccessGrantError("Failed to get service access configuration")
        if not base_uri:
            raise AccessGrantError("service access configuration has no proxy URI")
        return AccessGrant(self._normalize_base_uri(str(base_uri)), str(token), jwt_expiry(str(token)))

    async def get_access(self, agent_did: str) -> AccessGrant:
        if self.grant_cache:
            cached = self._grants.get(agent_did)
            if cached and cached.valid_at(self._clock(), self.GRANT_SKEW_SECONDS):
                return cached
        grant = await self._fetch_grant(agent_did)
        logging_utils.info(_LOG, "access grant issued", agent=agent_did, base_uri=grant.base_uri)
        if self.grant_cache:
            if grant.valid_at(self._clock(), self.GRANT_SKEW_SECONDS):
                self._grants[agent_did] = grant
            else:
                self._grants.pop(agent_did, None)
        return grant

    async def get_generation_client(self, agent_did: str) -> GenerationClient:
        grant = await self.get_access(agent_did)
        return GenerationClient(grant.base_uri, grant.token, timeout=self.timeout, max_retries=self.max_retries)
