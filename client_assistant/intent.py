"""Keyword-based intent detection for the latest user message.

Each topic is matched independently, so one message can need several data
sources at once (e.g. "summarize the notes and the budget").
"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass

_TOPIC_PATTERNS: dict[str, re.Pattern[str]] = {
    "crm": re.compile(
        r"note|message|conversation|history|communication|crm|email|sms|task|"
        r"meeting|transcript|follow.?up|last.?contact|overview|summary",
        re.IGNORECASE,
    ),
    "jobs": re.compile(
        r"job|project|budget|cost|revenue|schedule|daily.?log|comment|jobtread|"
        r"active.*job|profit|margin",
        re.IGNORECASE,
    ),
    "team": re.compile(
        r"team|member|assign|who.*work|staff|employee|crew",
        re.IGNORECASE,
    ),
    "customers": re.compile(
        r"customer|client.*list|all.*client|account",
        re.IGNORECASE,
    ),
    "vendors": re.compile(
        r"vendor|supplier|sub|trade.*partner",
        re.IGNORECASE,
    ),
}


@dataclass(frozen=True)
class Intent:
    """Which data sources the latest message asks about."""

    crm: bool = False
    jobs: bool = False
    team: bool = False
    customers: bool = False
    vendors: bool = False

    @property
    def topics(self) -> dict[str, bool]:
        return dataclasses.asdict(self)

    def any(self) -> bool:
        return any(self.topics.values())

    def with_fallback(self, has_client: bool) -> Intent:
        """Default to CRM data for a selected client, otherwise active jobs."""
        if self.any():
            return self
        if has_client:
            return dataclasses.replace(self, crm=True)
        return dataclasses.replace(self, jobs=True)


def classify(text: str) -> Intent:
    """Return the topics mentioned in *text*. Pure; no I/O."""
    if not text or not text.strip():
        return Intent()
    return Intent(**{
        topic: bool(pattern.search(text))
        for topic, pattern in _TOPIC_PATTERNS.items()
    })
