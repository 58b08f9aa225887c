"""
JSONL Review Recorder — append-only review log on disk.

One JSON object per line:
    {"cardId": "...", "deckId": "...", "rating": 3, "reviewedAt": "..."}
"""

import json
import logging
from pathlib import Path

from asmara.domain.models import ReviewEvent
from asmara.domain.ports import ReviewRecorder

logger = logging.getLogger(__name__)


class JsonlReviewRecorder(ReviewRecorder):
    def __init__(self, data_dir: Path):
        self.path = Path(data_dir) / "reviews.jsonl"

    async def record(self, event: ReviewEvent) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(event.to_document()) + "\n")
            return True
        except OSError as e:
            logger.warning(f"Failed to append review for card {event.card_id}: {e}")
            return False

    async def events_for_deck(self, deck_id: str) -> list[ReviewEvent]:
        if not self.path.exists():
            return []

        events: list[ReviewEvent] = []
        with self.path.open(encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    event = ReviewEvent.from_document(json.loads(line))
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Skipping malformed review log line {lineno}: {e}")
                    continue
                if event.deck_id == deck_id:
                    events.append(event)
        return events
