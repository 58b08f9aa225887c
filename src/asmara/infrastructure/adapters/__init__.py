from .memory_store import InMemoryCardStore, InMemoryReviewRecorder
from .review_log import JsonlReviewRecorder
from .yaml_store import YamlCardStore

__all__ = [
    "InMemoryCardStore",
    "InMemoryReviewRecorder",
    "JsonlReviewRecorder",
    "YamlCardStore",
]
