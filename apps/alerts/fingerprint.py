"""
Fingerprint generation for incident grouping.

Two alerts with the same fingerprint describe the same logical condition and
share one incident timeline. Severity is part of the key, so a warning and a
critical alert for the same condition keep independent lifecycles.
"""

from __future__ import annotations

import hashlib
import re

from apps.alerts.identity import AlertIdentity

FINGERPRINT_LENGTH = 64
FIELD_DELIMITER = "::"

# Applied in order; earlier patterns consume text later ones would also match.
_VOLATILE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\d{4}-\d{2}-\d{2}t\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:z|[+-]\d{2}:?\d{2})?"), "[timestamp]"),
    (re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b"), "[ip]"),
    (re.compile(r"\d+(?:\.\d+)?\s?%"), "[percentage]"),
    (re.compile(r"\b\d+(?:\.\d+)?\s?(?:[kmgtp]i?b|bytes?)\b"), "[size]"),
    (re.compile(r"\b\d+(?:\.\d+)?\s?(?:ms|s|m|h|d)\b"), "[duration]"),
    (re.compile(r"\b\d+(?:\.\d+)?\b"), "[number]"),
]

_WHITESPACE = re.compile(r"\s+")


def normalize_message(message: str) -> str:
    """Lower-case, collapse whitespace and replace volatile values with placeholders."""
    normalized = _WHITESPACE.sub(" ", (message or "").strip().lower())
    for pattern, placeholder in _VOLATILE_PATTERNS:
        normalized = pattern.sub(placeholder, normalized)
    return normalized


def normalize_field(value: str) -> str:
    return (value or "").strip().lower()


def generate_fingerprint(identity: AlertIdentity) -> str:
    """Return the stable grouping key for an alert identity."""
    content = FIELD_DELIMITER.join(
        [
            normalize_field(identity.namespace),
            normalize_field(identity.service),
            normalize_field(identity.instance),
            normalize_field(identity.severity),
            normalize_message(identity.message),
        ]
    )
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]
