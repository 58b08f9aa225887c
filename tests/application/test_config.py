from pathlib import Path

import pytest
from pydantic import ValidationError

from asmara.application.config import AppConfig, resolve_config
from asmara.domain.deck import DeckConfig


def test_defaults(mock_home):
    config = resolve_config()

    assert config.backend == "yaml"
    assert config.data_dir == mock_home / ".local/share/asmara"
    assert config.deck_defaults() == DeckConfig()
    assert config.tunables().reinsert_after_again == 3
    assert config.port == 8778


def test_env_vars(monkeypatch):
    monkeypatch.setenv("ASMARA_LEARNING_STEPS", "5,15")
    monkeypatch.setenv("ASMARA_RELEARNING_STEPS", "[2, 30]")
    monkeypatch.setenv("ASMARA_BACKEND", "memory")
    monkeypatch.setenv("ASMARA_NEW_CARDS_USE_LEARNING_STEPS", "true")

    config = resolve_config()

    assert config.backend == "memory"
    assert config.deck_defaults().learning_steps == (5, 15)
    assert config.deck_defaults().relearning_steps == (2, 30)
    assert config.tunables().new_cards_use_learning_steps is True


def test_toml_file(mock_home):
    cfg = mock_home / ".config/asmara/config.toml"
    cfg.parent.mkdir(parents=True)
    cfg.write_text(
        'backend = "memory"\nlearning_steps = [2, 20]\neasy_interval_days = 5\n',
        encoding="utf-8",
    )

    config = resolve_config()

    assert config.backend == "memory"
    assert config.deck_defaults().learning_steps == (2, 20)
    assert config.deck_defaults().easy_interval_days == 5


def test_legacy_dotfile_location(mock_home):
    (mock_home / ".asmara.toml").write_text("port = 9000\n", encoding="utf-8")
    assert resolve_config().port == 9000


def test_precedence(mock_home, monkeypatch, tmp_path):
    cfg = mock_home / ".config/asmara/config.toml"
    cfg.parent.mkdir(parents=True)
    cfg.write_text('backend = "memory"\nport = 9000\n', encoding="utf-8")
    monkeypatch.setenv("ASMARA_PORT", "9100")

    config = resolve_config({"data_dir": str(tmp_path / "d"), "backend": "yaml", "host": None})

    assert config.port == 9100
    assert config.backend == "yaml"
    assert config.host == "127.0.0.1"
    assert config.data_dir == (tmp_path / "d").resolve()


def test_data_dir_expands_user(mock_home):
    config = AppConfig(data_dir="~/cards")
    assert config.data_dir == Path(mock_home / "cards").resolve()


def test_invalid_backend():
    with pytest.raises(ValidationError):
        AppConfig(backend="sqlite")
