"""PIN-based access tokens for the team UI.

A token is ``base64("<pin>:<issued-at-ms>")``.  Validation only checks that
the PIN part matches ``APP_PIN``.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import time

from client_assistant.config import APP_PIN

_BEARER = "Bearer "


def issue_token(pin: str, *, expected_pin: str | None = None) -> str | None:
    """Return a token for a correct *pin*, else ``None``."""
    expected = expected_pin or APP_PIN
    if not pin or not hmac.compare_digest(pin.encode("utf-8"), expected.encode("utf-8")):
        return None
    raw = f"{pin}:{int(time.time() * 1000)}"
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def validate_token(authorization: str | None, *, expected_pin: str | None = None) -> bool:
    """Check an ``Authorization: Bearer <token>`` header value."""
    if not authorization or not authorization.startswith(_BEARER):
        return False
    token = authorization[len(_BEARER):].strip()
    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return False
    pin = decoded.split(":", 1)[0]
    return bool(pin) and hmac.compare_digest(pin.encode("utf-8"), (expected_pin or APP_PIN).encode("utf-8"))
