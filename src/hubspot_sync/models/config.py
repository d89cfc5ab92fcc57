"""Connector configuration model with env and YAML loaders."""

import os
from pathlib import Path
from typing import Any, Literal, Optional

try:
    import yaml
except ModuleNotFoundError as e:
    raise ModuleNotFoundError(
        "PyYAML is required for config loading. Run: poetry install"
    ) from e
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from hubspot_sync.errors import ConfigError

DEFAULT_BASE_URL = "https://api.hubapi.com"
MAX_PAGE_SIZE = 100


class AuthConfig(BaseModel):
    """Bearer-token (private app) authentication."""

    type: Literal["bearer"] = "bearer"
    token: str = Field(..., min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _lift_nested_bearer(cls, data: Any) -> Any:
        # Also accept {"type": "bearer", "bearer": {"token": ...}}
        if isinstance(data, dict) and "token" not in data and isinstance(data.get("bearer"), dict):
            data = {**data, "token": data["bearer"].get("token")}
            data.pop("bearer", None)
        return data

    @field_validator("token")
    @classmethod
    def _token_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("token must not be blank")
        if any(c.isspace() for c in v):
            raise ValueError("token must not contain whitespace")
        return v


class RateLimitConfig(BaseModel):
    """Token bucket settings. HubSpot private apps allow roughly 10 requests/second."""

    model_config = ConfigDict(populate_by_name=True)

    requests_per_second: float = Field(default=10.0, gt=0, alias="requestsPerSecond")
    burst_capacity: int = Field(default=10, ge=1, alias="burstCapacity")


class RetryConfig(BaseModel):
    """Exponential backoff for 429 / 5xx / transport errors."""

    model_config = ConfigDict(populate_by_name=True)

    max_attempts: int = Field(default=5, ge=1, alias="maxAttempts")
    base_delay: float = Field(default=0.5, ge=0, alias="baseDelay")
    max_delay: float = Field(default=30.0, ge=0, alias="maxDelay")


class ConnectorConfig(BaseModel):
    """Validated connector configuration. Building one performs no I/O."""

    model_config = ConfigDict(populate_by_name=True)

    auth: AuthConfig
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig, alias="rateLimit")
    page_size: int = Field(default=MAX_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize")
    base_url: str = Field(default=DEFAULT_BASE_URL, alias="baseUrl")
    timeout: float = Field(default=30.0, gt=0, description="Per-request timeout (seconds)")
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @field_validator("base_url")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return v.rstrip("/")

    @classmethod
    def parse(cls, data: Any) -> "ConnectorConfig":
        """Validate a mapping (or pass through an instance); raise ConfigError on failure."""
        if isinstance(data, cls):
            return data
        if not isinstance(data, dict):
            raise ConfigError(f"Connector config must be a mapping, got {type(data).__name__}")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid connector config: {e}") from e

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> "ConnectorConfig":
        """Build from HUBSPOT_* environment variables."""
        env = os.environ if environ is None else environ
        token = env.get("HUBSPOT_TOKEN")
        if not token:
            raise ConfigError("HUBSPOT_TOKEN environment variable is required")
        data: dict[str, Any] = {"auth": {"type": "bearer", "token": token}}
        rate: dict[str, Any] = {}
        if env.get("HUBSPOT_REQUESTS_PER_SECOND"):
            rate["requests_per_second"] = env["HUBSPOT_REQUESTS_PER_SECOND"]
        if env.get("HUBSPOT_BURST_CAPACITY"):
            rate["burst_capacity"] = env["HUBSPOT_BURST_CAPACITY"]
        if rate:
            data["rate_limit"] = rate
        if env.get("HUBSPOT_PAGE_SIZE"):
            data["page_size"] = env["HUBSPOT_PAGE_SIZE"]
        if env.get("HUBSPOT_BASE_URL"):
            data["base_url"] = env["HUBSPOT_BASE_URL"]
        return cls.parse(data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ConnectorConfig":
        """
        Load from YAML. Token may be omitted from the file and supplied via
        HUBSPOT_TOKEN so secrets stay out of checked-in config.
        """
        data = yaml.safe_load(Path(path).read_text()) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        data = data.get("hubspot", data)
        auth = dict(data.get("auth") or {})
        if not auth.get("token") and os.environ.get("HUBSPOT_TOKEN"):
            auth["token"] = os.environ["HUBSPOT_TOKEN"]
            auth.setdefault("type", "bearer")
        data = {**data, "auth": auth}
        return cls.parse(data)
