"""Resolution of stored per-deck overrides against the global defaults."""

import logging
from collections.abc import Mapping
from typing import Any

from asmara.domain.deck import DEFAULT_DECK_CONFIG, DeckConfig

logger = logging.getLogger(__name__)

# Stored document key -> DeckConfig attribute
DOCUMENT_KEYS = {
    "learningStepsMinutes": "learning_steps",
    "relearningStepsMinutes": "relearning_steps",
    "graduatingIntervalDays": "graduating_interval_days",
    "easyIntervalDays": "easy_interval_days",
}


def resolve_deck_config(
    overrides: Mapping[str, Any] | None,
    defaults: DeckConfig = DEFAULT_DECK_CONFIG,
) -> DeckConfig:
    """
    Substitute defaults for every field the deck does not override.

    A field counts as absent when it is missing, None, zero or an empty list:
    none of those can drive the scheduler, so they fall back to the default.
    With no overrides at all the result equals `defaults` exactly.

    Raises:
        InvalidDeckConfigError: An override is present but unusable
            (e.g. a negative step).
    """
    values: dict[str, Any] = {}
    for key, attr in DOCUMENT_KEYS.items():
        raw = (overrides or {}).get(key)
        if not raw:
            values[attr] = getattr(defaults, attr)
            continue
        if attr.endswith("_steps"):
            values[attr] = tuple(float(s) for s in raw)
        else:
            values[attr] = float(raw)

    unknown = set(overrides or {}) - set(DOCUMENT_KEYS)
    if unknown:
        logger.debug(f"Ignoring unknown deck config keys: {sorted(unknown)}")

    return DeckConfig(**values)


def deck_config_to_document(config: DeckConfig) -> dict[str, Any]:
    return {key: _plain(getattr(config, attr)) for key, attr in DOCUMENT_KEYS.items()}


def _plain(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_plain(v) for v in value]
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value
