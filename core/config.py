"""Configuration models and loading."""

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.exceptions import ConfigurationError

SECRET_ENV_VARS = ("NFSE_PROXY_SECRET", "PROXY_SECRET")
DEFAULT_SECRET_HEADER = "x-proxy-secret"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class ProxySettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    shared_secret: str = Field(min_length=1, repr=False)
    secret_header: str = DEFAULT_SECRET_HEADER
    debug: bool = False
    max_body_size: int = Field(default=10 * 1024 * 1024, gt=0)


class UpstreamSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    timeout: float = Field(default=30.0, gt=0)
    # None means every request must say whether to verify the upstream chain
    verify_certificate: bool | None = None
    ca_bundle: str | None = None


class ProxyConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    proxy: ProxySettings
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)


def load_config(environ: Mapping[str, str] | None = None) -> ProxyConfig:
    """Build the process configuration from environment variables."""
    env = os.environ if environ is None else environ

    secret = next((env[name] for name in SECRET_ENV_VARS if env.get(name)), "")
    if not secret:
        raise ConfigurationError(f"{SECRET_ENV_VARS[0]} must be set to a non-empty value")

    proxy: dict[str, object] = {"shared_secret": secret}
    upstream: dict[str, object] = {}

    if env.get("PROXY_HOST"):
        proxy["host"] = env["PROXY_HOST"]
    if env.get("PORT"):
        proxy["port"] = _parse_int(env, "PORT")
    if env.get("PROXY_SECRET_HEADER"):
        proxy["secret_header"] = env["PROXY_SECRET_HEADER"].lower()
    if env.get("PROXY_DEBUG"):
        proxy["debug"] = _parse_bool(env, "PROXY_DEBUG")
    if env.get("PROXY_MAX_BODY_SIZE"):
        proxy["max_body_size"] = _parse_int(env, "PROXY_MAX_BODY_SIZE")

    if env.get("PROXY_UPSTREAM_TIMEOUT"):
        upstream["timeout"] = _parse_float(env, "PROXY_UPSTREAM_TIMEOUT")
    if env.get("PROXY_VERIFY_UPSTREAM"):
        upstream["verify_certificate"] = _parse_bool(env, "PROXY_VERIFY_UPSTREAM")
    if env.get("PROXY_UPSTREAM_CA_BUNDLE"):
        upstream["ca_bundle"] = env["PROXY_UPSTREAM_CA_BUNDLE"]

    return ProxyConfig(
        proxy=_validate(ProxySettings, proxy, "proxy"),
        upstream=_validate(UpstreamSettings, upstream, "upstream"),
    )


def _validate(model: type[BaseModel], data: dict[str, object], section: str):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        # Field names only; values may include the secret
        fields = ", ".join(
            ".".join([section, *(str(p) for p in err["loc"])]) for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {fields}") from None


def _parse_int(env: Mapping[str, str], name: str) -> int:
    try:
        return int(env[name])
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer") from None


def _parse_float(env: Mapping[str, str], name: str) -> float:
    try:
        return float(env[name])
    except ValueError:
        raise ConfigurationError(f"{name} must be a number") from None


def _parse_bool(env: Mapping[str, str], name: str) -> bool:
    value = env[name].strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be true or false")
