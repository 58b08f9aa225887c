import pytest

from asmara.domain.deck import DEFAULT_TUNABLES, DeckConfig, SchedulerTunables
from asmara.domain.errors import InvalidDeckConfigError


def test_defaults_match_documented_values():
    config = DeckConfig()
    assert config.learning_steps == (1, 10)
    assert config.relearning_steps == (1, 10)
    assert config.graduating_interval_days == 1
    assert config.easy_interval_days == 4


def test_lists_become_tuples():
    config = DeckConfig(learning_steps=[5, 30, 120])
    assert config.learning_steps == (5, 30, 120)
    assert hash(config)


def test_ladder_for_status():
    config = DeckConfig(learning_steps=(1,), relearning_steps=(2, 3))
    assert config.ladder_for("learning") == (1,)
    assert config.ladder_for("relearning") == (2, 3)
    with pytest.raises(ValueError):
        config.ladder_for("review")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"learning_steps": ()},
        {"relearning_steps": (1, 0)},
        {"graduating_interval_days": 0},
        {"easy_interval_days": -1},
    ],
)
def test_invalid_deck_config(kwargs):
    with pytest.raises(InvalidDeckConfigError):
        DeckConfig(**kwargs)


def test_tunables_defaults():
    assert DEFAULT_TUNABLES.min_ease_factor == 1.3
    assert DEFAULT_TUNABLES.easy_bonus == 1.3
    assert DEFAULT_TUNABLES.hard_interval_multiplier == 1.2
    assert DEFAULT_TUNABLES.reinsert_after_again == 3
    assert DEFAULT_TUNABLES.reinsert_after_hard_learning == 5
    assert DEFAULT_TUNABLES.new_cards_use_learning_steps is False


@pytest.mark.parametrize(
    "kwargs",
    [
        {"reinsert_after_again": -1},
        {"default_ease_factor": 1.0},
        {"hard_interval_multiplier": 0.9},
    ],
)
def test_invalid_tunables(kwargs):
    with pytest.raises(InvalidDeckConfigError):
        SchedulerTunables(**kwargs)
