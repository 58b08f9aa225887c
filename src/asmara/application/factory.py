"""
Storage Factory
Centralizes the logic for selecting the storage and review-log adapters.
"""

from asmara.application.config import AppConfig
from asmara.domain.ports import CardStore, ReviewRecorder
from asmara.infrastructure.adapters.memory_store import (
    InMemoryCardStore,
    InMemoryReviewRecorder,
)
from asmara.infrastructure.adapters.review_log import JsonlReviewRecorder
from asmara.infrastructure.adapters.yaml_store import YamlCardStore


def get_card_store(config: AppConfig) -> CardStore:
    """
    Returns the CardStore implementation selected by config.backend.
    """
    if config.backend == "memory":
        return InMemoryCardStore(defaults=config.deck_defaults())
    return YamlCardStore(config.data_dir, defaults=config.deck_defaults())


def get_review_recorder(config: AppConfig) -> ReviewRecorder:
    """
    Returns the ReviewRecorder implementation matching the store backend.
    """
    if config.backend == "memory":
        return InMemoryReviewRecorder()
    return JsonlReviewRecorder(config.data_dir)
