"""
Error taxonomy for the scheduler and its collaborators.

Invalid input errors are ValueError subclasses: they signal a programming or
data-integrity problem and are never retried. Storage errors belong to the
session-level caller, which decides whether to retry or surface them.
"""


class AsmaraError(Exception):
    """Base class for all asmara errors."""


class InvalidRatingError(AsmaraError, ValueError):
    """Rating outside 1..4."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Rating must be one of 1, 2, 3, 4 (got {value!r})")


class InvalidCardError(AsmaraError, ValueError):
    """A card record violates a scheduling invariant."""

    def __init__(self, card_id: str, reason: str):
        self.card_id = card_id
        self.reason = reason
        super().__init__(f"Card {card_id!r} is invalid: {reason}")


class InvalidDeckConfigError(AsmaraError, ValueError):
    """A deck configuration cannot drive the scheduler."""


class StorageError(AsmaraError):
    """The storage collaborator failed to load or persist data."""


class DeckNotFoundError(StorageError):
    def __init__(self, deck_id: str):
        self.deck_id = deck_id
        super().__init__(f"Deck {deck_id!r} not found")


class CardNotFoundError(StorageError):
    def __init__(self, deck_id: str, card_id: str):
        self.deck_id = deck_id
        self.card_id = card_id
        super().__init__(f"Card {card_id!r} not found in deck {deck_id!r}")


class SessionFinishedError(AsmaraError):
    """Grading was attempted after the session ran out of cards."""
