from __future__ import annotations

import importlib
from typing import Any

from shared.errors import ConfigurationError

APP_ID = "mediagate"
APP_VERSION = "1.0.0"


class NeverminedPayments:
    """``PaymentsBackend`` on top of the Nevermined ``payments-py`` SDK.

    The SDK is imported on connect so the rest of the code base (and the
    test suite) does not need it installed.
    """

    def __init__(self, sdk: Any):
        self.sdk = sdk

    @classmethod
    def connect(cls, api_key: str | None, environment: str) -> "NeverminedPayments":
        if not api_key:
            raise ConfigurationError("NVM_API_KEY is not set")
        try:
            module = importlib.import_module("payments_py")
        except ImportError as exc:
            raise ConfigurationError("payments-py is not installed; install mediagate[nevermined]") from exc
        env_cls = module.Environment
        resolve = getattr(env_cls, "get_environment", None)
        env = resolve(environment) if resolve else env_cls[environment]
        return cls(module.Payments(nvm_api_key=api_key, environment=env, app_id=APP_ID, version=APP_VERSION))

    def get_plan_balance(self, plan_did: str) -> Any:
        return self.sdk.get_plan_balance(plan_did)

    def get_asset_ddo(self, did: str) -> Any:
        ddo = self.sdk.get_asset_ddo(did)
        # older SDK releases hand back the raw HTTP response
        if hasattr(ddo, "json") and callable(ddo.json):
            if hasattr(ddo, "raise_for_status"):
                ddo.raise_for_status()
            return ddo.json()
        return ddo

    def order_plan(self, plan_did: str) -> Any:
        return self.sdk.order_plan(plan_did)

    def get_service_access_config(self, agent_did: str) -> Any:
        query = getattr(self.sdk, "query", None)
        getter = getattr(query, "get_service_access_config", None) or getattr(self.sdk, "get_service_token", None)
        if getter is None:
            raise ConfigurationError("installed payments-py exposes no service access API")
        return getter(agent_did)
