from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from shared.errors import ConfigurationError
from shared.paths import state_dir

ENVIRONMENT = "testing"
PLAN_DID = "did:nv:bbc5556a932bdeb88bbe45045530e491ad428b351fb43c8bd4be04dba7878a3d"
AGENT_DID = "did:nv:2fa0a0c9ec6cd923827fe3657298ac9d8cd8cafb07120b10e94b2a26d962a793"
INLINE_LIMIT_BYTES = 1024 * 1024

_TRUTHY = {"1", "true", "yes", "on"}

# (env var, field) for tuning knobs; identifiers only come from defaults or config.json
_ENV_OVERRIDES = (
    ("MEDIAGATE_INLINE_LIMIT_BYTES", "inline_limit_bytes"),
    ("MEDIAGATE_INSECURE_PROXY", "insecure_proxy_scheme"),
    ("MEDIAGATE_REQUEST_TIMEOUT", "request_timeout"),
    ("MEDIAGATE_MAX_RETRIES", "max_retries"),
    ("MEDIAGATE_GRANT_CACHE", "grant_cache"),
    ("MEDIAGATE_LOG_LEVEL", "log_level"),
)


def config_path() -> Path:
    return state_dir() / "config.json"


@dataclass
class MediaGateConfig:
    api_key: str | None = None
    environment: str = ENVIRONMENT
    plan_did: str = PLAN_DID
    agent_did: str = AGENT_DID
    inline_limit_bytes: int = INLINE_LIMIT_BYTES
    insecure_proxy_scheme: bool = False
    request_timeout: float = 60.0
    max_retries: int = 0
    grant_cache: bool = False
    log_level: str = "INFO"

    @classmethod
    def load(cls, path: Path | None = None, env: dict[str, str] | None = None) -> "MediaGateConfig":
        env = dict(os.environ) if env is None else env
        path = path or config_path()
        values: dict[str, Any] = {}
        if path.exists():
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise ConfigurationError(f"invalid config file {path}: {exc}") from exc
            known = {f.name for f in fields(cls)} - {"api_key"}
            values.update({k: v for k, v in raw.items() if k in known})
        for var, name in _ENV_OVERRIDES:
            if env.get(var) not in (None, ""):
                values[name] = env[var]
        values["api_key"] = env.get("NVM_API_KEY") or None
        return cls(**{k: _coerce(cls, k, v) for k, v in values.items()})

    def validate(self) -> None:
        if not self.api_key:
            raise ConfigurationError("NVM_API_KEY is not set")
        if self.inline_limit_bytes <= 0:
            raise ConfigurationError("inline_limit_bytes must be positive")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must not be negative")

    def redacted(self) -> dict[str, Any]:
        data = asdict(self)
        key = data.get("api_key") or ""
        data["api_key"] = f"{key[:4]}..." if key else None
        return data


def _coerce(cls, name: str, value: Any) -> Any:
    default = next(f.default for f in fields(cls) if f.name == name)
    if isinstance(default, bool):
        return value if isinstance(value, bool) else str(value).strip().lower() in _TRUTHY
    try:
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"invalid value for {name}: {value!r}") from exc
    return value
