"""Settings for the client assistant, read once at import time.

Secrets come from the process environment (a local ``.env`` is loaded
first).  On AWS, a secret missing from the environment is read from SSM
Parameter Store under ``/client-assistant/<NAME>``.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_SSM_PREFIX = "/client-assistant"
_PLACEHOLDER_PREFIX = "your_"


def _on_aws() -> bool:
    return bool(os.getenv("AWS_EXECUTION_ENV"))


def _from_ssm(name: str) -> str | None:
    """Decrypted SSM value for *name*, or ``None`` when it can't be read."""
    try:
        import boto3  # noqa: PLC0415 - optional "aws" extra

        parameter = boto3.client("ssm").get_parameter(
            Name=f"{_SSM_PREFIX}/{name}", WithDecryption=True,
        )
    except Exception:
        logger.debug("No SSM parameter for %s", name)
        return None
    return parameter["Parameter"]["Value"]


def _secret(name: str) -> str:
    """Resolve a required secret or fail with a message naming both sources."""
    value = os.getenv(name, "")
    if value and not value.startswith(_PLACEHOLDER_PREFIX):
        return value
    if _on_aws():
        stored = _from_ssm(name)
        if stored:
            return stored
    raise OSError(
        f"Missing required configuration: {name}. Set it in the environment/.env "
        f"or in SSM Parameter Store at {_SSM_PREFIX}/{name}."
    )


def _int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


# ── Anthropic ───────────────────────────────────────────────────────
ANTHROPIC_API_KEY: str = _secret("ANTHROPIC_API_KEY")
MODEL_NAME: str = os.getenv("MODEL_NAME", "claude-sonnet-4-20250514")
MAX_TOKENS: int = _int("MAX_TOKENS", 4096)

# Hard cap on model → tool → model round-trips per request
MAX_TOOL_ITERATIONS: int = _int("MAX_TOOL_ITERATIONS", 5)

# ── Company persona (used in the system prompts) ────────────────────
COMPANY_NAME: str = os.getenv("COMPANY_NAME", "Brett King Builder (BKB)")
COMPANY_PROFILE: str = os.getenv(
    "COMPANY_PROFILE",
    "a high-end residential renovation and historic home restoration "
    "company in Bucks County, PA",
)

# ── GoHighLevel (CRM) ───────────────────────────────────────────────
GHL_API_KEY: str = _secret("GHL_API_KEY")
GHL_LOCATION_ID: str = _secret("GHL_LOCATION_ID")
GHL_BASE_URL: str = "https://services.leadconnectorhq.com"
GHL_API_VERSION: str = "2021-07-28"

# ── JobTread (project management) ───────────────────────────────────
JOBTREAD_API_KEY: str = _secret("JOBTREAD_API_KEY")
JOBTREAD_BASE_URL: str = "https://api.jobtread.com"

# ── Access ──────────────────────────────────────────────────────────
APP_PIN: str = _secret("APP_PIN")

# ── HTTP server ─────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = _int("SERVER_PORT", 8000)
CORS_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origin.strip()
]
