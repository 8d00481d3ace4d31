"""Rendering of loosely-typed CRM records into prompt-ready text.

A contact profile is rendered in two passes:

1. ``PRIORITY_FIELDS`` - an ordered list of well-known keys shown with human
   labels (dates formatted for reading).
2. A catch-all pass over every remaining key that is not in ``SKIP_FIELDS``.

The catch-all pass guarantees that any populated field the CRM returns ends
up in the prompt, even fields added to the CRM after this code was written.
Only empty values and empty ``[]`` / ``{}`` literals are dropped.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

PRIORITY_FIELDS: list[tuple[str, str]] = [
    ("firstName", "First Name"),
    ("lastName", "Last Name"),
    ("email", "Email"),
    ("phone", "Phone"),
    ("companyName", "Company"),
    ("address1", "Address"),
    ("city", "City"),
    ("state", "State"),
    ("postalCode", "Postal Code"),
    ("country", "Country"),
    ("website", "Website"),
    ("source", "Lead Source"),
    ("dateAdded", "Date Added"),
    ("dateOfBirth", "Date of Birth"),
    ("assignedTo", "Assigned To"),
    ("dnd", "Do Not Disturb"),
    ("lastActivity", "Last Activity"),
]

_DATETIME_FIELDS = frozenset({"dateAdded", "lastActivity"})

# Internal bookkeeping keys that never help answer a question
SKIP_FIELDS = frozenset({
    "id",
    "locationId",
    "fingerprint",
    "firstNameLowerCase",
    "lastNameLowerCase",
    "fullNameLowerCase",
    "emailLowerCase",
    "contactName",
    "companyLowerCase",
    "__v",
    "deleted",
    "type",
})

# Custom-field keys that hold the linked JobTread job id
JOB_ID_FIELD_PATTERNS: tuple[str, ...] = ("jt_job_id", "jt.job", "jobtread")

_EMPTY_LITERALS = frozenset({"", "[]", "{}"})


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), default=str)


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _field_key(field: dict[str, Any], default: str = "field") -> str:
    return str(field.get("fieldKey") or field.get("key") or field.get("id") or default)


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)


def format_value(value: Any) -> str:
    """Render any JSON value as a short single-line string ("" when empty)."""
    if _is_blank(value):
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (str, int, float)):
        return str(value)
    if isinstance(value, list):
        if not value:
            return ""
        parts = []
        for item in value:
            if isinstance(item, dict):
                if not _is_blank(item.get("value")):
                    parts.append(f"{_field_key(item)}: {_scalar(item['value'])}")
                else:
                    parts.append(_compact_json(item))
            else:
                parts.append(str(item))
        return ", ".join(parts)
    if isinstance(value, dict):
        return _compact_json(value)
    return str(value)


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # Epoch milliseconds
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def format_date(value: Any) -> str:
    """``2024-03-05T14:00:00Z`` → ``3/5/2024``; unparseable input is returned as-is."""
    dt = _parse_timestamp(value)
    if dt is None:
        return format_value(value)
    return f"{dt.month}/{dt.day}/{dt.year}"


def format_datetime(value: Any) -> str:
    """``2024-03-05T14:00:00Z`` → ``3/5/2024, 2:00:00 PM``."""
    dt = _parse_timestamp(value)
    if dt is None:
        return format_value(value)
    hour = dt.hour % 12 or 12
    meridiem = "AM" if dt.hour < 12 else "PM"
    return f"{dt.month}/{dt.day}/{dt.year}, {hour}:{dt.minute:02d}:{dt.second:02d} {meridiem}"


def format_custom_fields(custom_fields: Any, default_key: str = "Custom Field") -> list[str]:
    """Return ``key: value`` lines for every populated custom field."""
    if not isinstance(custom_fields, list):
        return []
    lines = []
    for field in custom_fields:
        if isinstance(field, dict) and not _is_blank(field.get("value")):
            lines.append(f"{_field_key(field, default_key)}: {_scalar(field['value'])}")
    return lines


def extract_job_id(custom_fields: Any) -> str | None:
    """Find the linked JobTread job id among CRM custom fields.

    The first field whose key matches one of ``JOB_ID_FIELD_PATTERNS`` and has
    a non-empty value wins.  Returns ``None`` when there is no such field.
    """
    if not isinstance(custom_fields, list):
        return None
    for field in custom_fields:
        if not isinstance(field, dict):
            continue
        key = str(field.get("fieldKey") or field.get("key") or field.get("id") or "").lower()
        if any(pattern in key for pattern in JOB_ID_FIELD_PATTERNS):
            value = field.get("value")
            if not _is_blank(value):
                return str(value)
    return None


def format_contact_profile(contact: dict[str, Any]) -> list[str]:
    """Render every populated field of a CRM contact, priority fields first."""
    lines: list[str] = []
    used: set[str] = set()

    for key, label in PRIORITY_FIELDS:
        used.add(key)
        value = format_value(contact.get(key))
        if not value:
            continue
        if key in _DATETIME_FIELDS:
            value = format_datetime(contact[key])
        lines.append(f"{label}: {value}")

    tags = contact.get("tags")
    if isinstance(tags, list) and tags:
        lines.append("Tags: " + ", ".join(str(t) for t in tags))
        used.add("tags")

    custom_fields = contact.get("customFields")
    if isinstance(custom_fields, list) and custom_fields:
        lines.extend(format_custom_fields(custom_fields))
        used.add("customFields")

    emails = contact.get("additionalEmails")
    if isinstance(emails, list) and emails:
        lines.append("Additional Emails: " + ", ".join(
            str(e.get("email", e)) if isinstance(e, dict) else str(e) for e in emails
        ))
        used.add("additionalEmails")

    phones = contact.get("additionalPhones")
    if isinstance(phones, list) and phones:
        lines.append("Additional Phones: " + ", ".join(
            str(p.get("phone", p)) if isinstance(p, dict) else str(p) for p in phones
        ))
        used.add("additionalPhones")

    opportunities = contact.get("opportunities")
    if isinstance(opportunities, list) and opportunities:
        for opp in opportunities:
            opp = opp if isinstance(opp, dict) else {}
            lines.append(
                f"Opportunity: {opp.get('name') or 'Unnamed'}"
                f" | Value: {opp.get('monetaryValue') or 'N/A'}"
                f" | Status: {opp.get('status') or 'N/A'}"
            )
        used.add("opportunities")

    # Catch-all: any populated field not handled above
    for key, raw in contact.items():
        if key in used or key in SKIP_FIELDS:
            continue
        value = format_value(raw)
        if value not in _EMPTY_LITERALS:
            lines.append(f"{key}: {value}")

    return lines
