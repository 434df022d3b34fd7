import base64
import json
from types import SimpleNamespace

import pytest
from unittest.mock import Mock

from shared.errors import AccessGrantError
from shared.generation import GenerationClient
from shared.payments import AccessBroker, jwt_expiry, min_credits_required


def _ddo(min_credits):
    services = [{"type": "metadata"}, {"type": "access"}, {"attributes": {"main": {"nftAttributes": {"minCreditsRequired": min_credits}}}}]
    return {"id": "did:nv:agent", "service": services}


def _jwt(exp):
    body = base64.urlsafe_b64encode(json.dumps({"exp": exp}).encode()).decode().rstrip("=")
    return f"header.{body}.sig"


@pytest.fixture
def payments():
    backend = Mock()
    backend.get_plan_balance.return_value = {"balance": "10"}
    backend.get_asset_ddo.return_value = _ddo(5)
    backend.get_service_access_config.return_value = {"neverminedProxyUri": "https://proxy.test", "accessToken": "tok"}
    return backend


def test_min_credits_defaults_to_zero():
    assert min_credits_required(None) == 0
    assert min_credits_required({"service": []}) == 0
    assert min_credits_required(_ddo(None)) == 0
    assert min_credits_required(_ddo("3")) == 3


def test_min_credits_found_outside_usual_slot():
    ddo = {"service": [{"attributes": {"main": {"nftAttributes": {"minCreditsRequired": 7}}}}]}
    assert min_credits_required(ddo) == 7


def _object_ddo(min_credits):
    nft = SimpleNamespace(minCreditsRequired=min_credits)
    priced = SimpleNamespace(attributes=SimpleNamespace(main=SimpleNamespace(nftAttributes=nft)))
    return SimpleNamespace(id="did:nv:agent", service=[SimpleNamespace(type="metadata"), SimpleNamespace(type="access"), priced])


def test_min_credits_read_from_sdk_objects():
    assert min_credits_required(_object_ddo(4)) == 4


@pytest.mark.asyncio
async def test_check_balance_insufficient_with_object_ddo(payments):
    payments.get_plan_balance.return_value = {"balance": "1"}
    payments.get_asset_ddo.return_value = _object_ddo(4)
    broker = AccessBroker(payments)
    assert await broker.check_balance("did:nv:plan", "did:nv:agent") is False


@pytest.mark.asyncio
async def test_check_balance_sufficient(payments):
    broker = AccessBroker(payments)
    assert await broker.check_balance("did:nv:plan", "did:nv:agent") is True
    payments.get_plan_balance.assert_called_once_with("did:nv:plan")
    payments.get_asset_ddo.assert_called_once_with("did:nv:agent")


@pytest.mark.asyncio
async def test_check_balance_equal_is_sufficient(payments):
    payments.get_plan_balance.return_value = {"balance": 5}
    assert await AccessBroker(payments).check_balance("p", "a") is True


@pytest.mark.asyncio
async def test_check_balance_insufficient(payments):
    payments.get_plan_balance.return_value = {"balance": 4}
    assert await AccessBroker(payments).check_balance("p", "a") is False


@pytest.mark.asyncio
async def test_check_balance_accepts_sdk_objects(payments):
    payments.get_plan_balance.return_value = Mock(balance=9)
    assert await AccessBroker(payments).check_balance("p", "a") is True


@pytest.mark.asyncio
async def test_check_balance_fails_closed(payments):
    payments.get_asset_ddo.side_effect = RuntimeError("ddo unavailable")
    assert await AccessBroker(payments).check_balance("p", "a") is False

    payments.get_asset_ddo.side_effect = None
    payments.get_plan_balance.return_value = {"balance": "lots"}
    assert await AccessBroker(payments).check_balance("p", "a") is False


@pytest.mark.asyncio
async def test_check_balance_is_repeatable(payments):
    broker = AccessBroker(payments)
    results = {await broker.check_balance("p", "a") for _ in range(3)}
    assert results == {True}
    assert payments.get_plan_balance.call_count == 3


@pytest.mark.asyncio
async def test_order_plan_success(payments):
    payments.order_plan.return_value = {"success": True, "agreementId": "ag-1"}
    outcome = await AccessBroker(payments).order_plan("did:nv:plan")
    assert outcome.success is True
    assert outcome.message == "Plan ordered successfully. Agreement ID: ag-1"


@pytest.mark.asyncio
async def test_order_plan_falsy_result(payments):
    broker = AccessBroker(payments)
    payments.order_plan.return_value = None
    assert (await broker.order_plan("p")).message == "Failed to create order"
    payments.order_plan.return_value = {"success": False}
    outcome = await broker.order_plan("p")
    assert outcome.success is False
    assert outcome.message == "Failed to create order"


@pytest.mark.asyncio
async def test_order_plan_exception_is_captured(payments):
    payments.order_plan.side_effect = RuntimeError("wallet empty")
    outcome = await AccessBroker(payments).order_plan("p")
    assert outcome.success is False
    assert outcome.message == "wallet empty"


@pytest.mark.asyncio
async def test_get_access_keeps_secure_scheme_by_default(payments):
    grant = await AccessBroker(payments).get_access("a")
    assert grant.base_uri == "https://proxy.test"
    assert grant.token == "tok"
    assert grant.expires_at is None


@pytest.mark.asyncio
async def test_get_access_can_downgrade_scheme(payments):
    grant = await AccessBroker(payments, insecure_proxy_scheme=True).get_access("a")
    assert grant.base_uri == "http://proxy.test"


@pytest.mark.asyncio
async def test_get_access_without_token_raises(payments):
    payments.get_service_access_config.return_value = {"neverminedProxyUri": "https://proxy.test"}
    with pytest.raises(AccessGrantError):
        await AccessBroker(payments).get_access("a")


@pytest.mark.asyncio
async def test_get_access_wraps_backend_errors(payments):
    payments.get_service_access_config.side_effect = RuntimeError("agent unknown")
    with pytest.raises(AccessGrantError, match="agent unknown"):
        await AccessBroker(payments).get_access("a")


@pytest.mark.asyncio
async def test_grants_are_fetched_per_call_by_default(payments):
    payments.get_service_access_config.return_value = {"neverminedProxyUri": "https://proxy.test", "accessToken": _jwt(2000)}
    broker = AccessBroker(payments, clock=lambda: 1000.0)
    await broker.get_access("a")
    await broker.get_access("a")
    assert payments.get_service_access_config.call_count == 2


@pytest.mark.asyncio
async def test_grant_cache_honours_expiry(payments):
    now = [1000.0]
    payments.get_service_access_config.return_value = {"neverminedProxyUri": "https://proxy.test", "accessToken": _jwt(2000)}
    broker = AccessBroker(payments, grant_cache=True, clock=lambda: now[0])

    first = await broker.get_access("a")
    assert first.expires_at == 2000
    assert await broker.get_access("a") is first
    assert payments.get_service_access_config.call_count == 1

    now[0] = 2000 - AccessBroker.GRANT_SKEW_SECONDS
    await broker.get_access("a")
    assert payments.get_service_access_config.call_count == 2


@pytest.mark.asyncio
async def test_grant_cache_skips_grants_without_expiry(payments):
    broker = AccessBroker(payments, grant_cache=True)
    await broker.get_access("a")
    await broker.get_access("a")
    assert payments.get_service_access_config.call_count == 2


@pytest.mark.asyncio
async def test_get_generation_client_binds_grant(payments):
    client = await AccessBroker(payments, timeout=5, max_retries=1).get_generation_client("a")
    assert isinstance(client, GenerationClient)
    assert client.base_uri == "https://proxy.test"
    assert client.token == "tok"
    assert client.timeout == 5
    assert client.max_retries == 1


def test_jwt_expiry_parsing():
    assert jwt_expiry(_jwt(1234)) == 1234
    assert jwt_expiry("opaque-token") is None
    assert jwt_expiry("a.!!!.c") is None
    assert jwt_expiry(None) is None
