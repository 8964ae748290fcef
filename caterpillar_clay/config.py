"""Application configuration loaded from environment variables."""

from __future__ import annotations

import enum
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass

_UNSIGNED = re.compile(r"\+?[0-9]+")

# Variables looked up with a _TEST/_PROD suffix first, then without one.
# Each is stored in the field named after the variable in lower case.
_SUFFIXED_REQUIRED_LEADING = ("CLERK_PUBLISHABLE_KEY",)
_SUFFIXED_REQUIRED = ("DATABASE_URL", "CLERK_SECRET_KEY", "STRIPE_SECRET_KEY")
_SUFFIXED_OPTIONAL = ("TURSO_AUTH_TOKEN",)
_SUFFIXED_OR_EMPTY = ("STRIPE_PUBLISHABLE_KEY",)
_SUFFIXED_REQUIRED_TRAILING = ("SHIPPO_API_KEY",)

# Variables read exactly as named.
_PLAIN_REQUIRED = ("SMTP_PASS",)
_PLAIN_OPTIONAL = (
    "RESEND_API_KEY",
    "R2_BUCKET",
    "R2_ACCOUNT_ID",
    "R2_ACCESS_KEY",
    "R2_SECRET_KEY",
    "R2_PUBLIC_URL",
    "UPSTASH_REDIS_URL",
)
_PLAIN_DEFAULTS = (
    ("SMTP_HOST", "smtp.resend.com"),
    ("SMTP_USER", "resend"),
    ("FROM_EMAIL", "[email]"),
    ("STORAGE_TYPE", "local"),
    ("UPLOAD_DIR", "./static/uploads"),
    ("BASE_URL", "http://localhost:3000"),
)
_RATE_LIMITS = ("RATE_LIMIT_GENERAL", "RATE_LIMIT_AUTH", "RATE_LIMIT_CHECKOUT")
_RATE_LIMIT_DEFAULT = 60
_PORT_DEFAULT = 3000


class DeployMode(enum.Enum):
    """Where the application runs: on a developer machine or in the cloud."""

    LOCAL = "local"
    CLOUD = "cloud"

    @classmethod
    def parse(cls, value: str) -> DeployMode:
        """Interpret a deploy-mode string; anything unrecognised means local."""
        if value.lower() in ("cloud", "production", "prod"):
            return cls.CLOUD
        return cls.LOCAL

    def is_cloud(self) -> bool:
        return self is DeployMode.CLOUD


class ConfigError(Exception):
    """A required environment variable is missing."""

    def __init__(self, name: str, hint: str | None = None) -> None:
        message = f"environment variable {name} is not set"
        if hint:
            message = f"{message} ({hint})"
        super().__init__(message)
        self.name = name


def _parse_unsigned(text: str, bits: int, default: int) -> int:
    if not _UNSIGNED.fullmatch(text):
        return default
    value = int(text)
    return value if value < 2**bits else default


def _first(env: Mapping[str, str], *keys: str) -> str | None:
    for key in keys:
        value = env.get(key)
        if value is not None:
            return value
    return None


def _webhook_candidates(testing_mode: bool, deploy_mode: DeployMode) -> tuple[str, ...]:
    """Names to try, in order, for the webhook signing value."""
    if testing_mode:
        deploy_suffix = "_CLOUD" if deploy_mode.is_cloud() else "_LOCAL"
        base = "STRIPE_WEBHOOK_SECRET_TEST"
        return (f"{base}{deploy_suffix}", base)
    # Production only runs in the cloud, so it has no deploy suffix.
    return ("STRIPE_WEBHOOK_SECRET_PROD",)


@dataclass(frozen=True)
class Config:
    """Every setting the server needs, resolved from the environment."""

    database_url: str
    turso_auth_token: str | None
    clerk_secret_key: str
    clerk_publishable_key: str
    clerk_jwks_url: str
    stripe_secret_key: str
    stripe_publishable_key: str
    stripe_webhook_secret: str
    shippo_api_key: str
    smtp_host: str
    smtp_user: str
    smtp_pass: str
    from_email: str
    resend_api_key: str | None
    storage_type: str
    upload_dir: str
    r2_bucket: str | None
    r2_account_id: str | None
    r2_access_key: str | None
    r2_secret_key: str | None
    r2_public_url: str | None
    base_url: str
    port: int
    testing_mode: bool
    deploy_mode: DeployMode
    rate_limit_general: int
    rate_limit_auth: int
    rate_limit_checkout: int
    upstash_redis_url: str | None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Config:
        """Build the configuration; raises ConfigError for missing required keys.

        Keys that differ between test and production are looked up with a
        ``_TEST`` or ``_PROD`` suffix first, then without one.
        """
        env = os.environ if environ is None else environ

        testing_mode = env.get("TESTING_MODE", "false").lower() == "true"
        deploy_mode = DeployMode.parse(env.get("DEPLOY_MODE", "local"))
        suffix = "_TEST" if testing_mode else "_PROD"

        fields: dict[str, object] = {}

        def optional(key: str) -> str | None:
            return _first(env, f"{key}{suffix}", key)

        def take_required(names: tuple[str, ...]) -> None:
            for name in names:
                value = optional(name)
                if value is None:
                    raise ConfigError(name)
                fields[name.lower()] = value

        take_required(_SUFFIXED_REQUIRED_LEADING)

        jwks_url = env.get("CLERK_JWKS_URL")
        if jwks_url is None:
            raise ConfigError(
                "CLERK_JWKS_URL",
                "the JWKS endpoint of the Clerk frontend API domain",
            )

        take_required(_SUFFIXED_REQUIRED)
        for name in _SUFFIXED_OPTIONAL:
            fields[name.lower()] = optional(name)
        for name in _SUFFIXED_OR_EMPTY:
            fields[name.lower()] = optional(name) or ""

        webhook = _first(env, *_webhook_candidates(testing_mode, deploy_mode)) or ""

        take_required(_SUFFIXED_REQUIRED_TRAILING)

        for name, default in _PLAIN_DEFAULTS:
            fields[name.lower()] = env.get(name, default)
        for name in _PLAIN_REQUIRED:
            value = env.get(name)
            if value is None:
                raise ConfigError(name)
            fields[name.lower()] = value
        for name in _PLAIN_OPTIONAL:
            fields[name.lower()] = env.get(name)
        for name in _RATE_LIMITS:
            fields[name.lower()] = _parse_unsigned(
                env.get(name, str(_RATE_LIMIT_DEFAULT)), 32, _RATE_LIMIT_DEFAULT
            )

        return cls(
            **fields,
            clerk_jwks_url=jwks_url,
            stripe_webhook_secret=webhook,
            port=_parse_unsigned(env.get("PORT", str(_PORT_DEFAULT)), 16, _PORT_DEFAULT),
            testing_mode=testing_mode,
            deploy_mode=deploy_mode,
        )