import logging

import pytest

from sus2timeline.config import DEFAULT_CFG_PATH, get_grammar, get_ticks_per_beat, load_config
from sus2timeline.timeline import Grammar


def test_packaged_defaults(empty_config) -> None:
    assert DEFAULT_CFG_PATH.exists()
    cfg = load_config(empty_config)
    assert cfg["grammar"] == {"measure_radix": 10, "empty_slot": "00"}
    assert cfg["unsupported_notes"] == "ignore"
    assert cfg["export"]["ticks_per_beat"] == 480
    assert get_grammar(cfg) == Grammar()


def test_user_overrides_are_deep_merged(tmp_path) -> None:
    user = tmp_path / "user.yaml"
    user.write_text("grammar:\n  measure_radix: 36\nexport:\n  velocity: 64\n", encoding="utf-8")
    cfg = load_config(user)
    assert cfg["grammar"] == {"measure_radix": 36, "empty_slot": "00"}
    assert cfg["export"]["velocity"] == 64
    assert cfg["export"]["ticks_per_beat"] == 480
    assert get_grammar(cfg).measure_radix == 36


def test_minimal_defaults_without_any_file(tmp_path) -> None:
    cfg = load_config(tmp_path / "none.yaml", default_path=tmp_path / "missing.yaml")
    assert get_grammar(cfg) == Grammar()
    assert get_ticks_per_beat(cfg) == 480


def test_broken_user_config_is_ignored(tmp_path, caplog) -> None:
    user = tmp_path / "broken.yaml"
    user.write_text("grammar: [unclosed\n", encoding="utf-8")
    with caplog.at_level(logging.WARNING):
        cfg = load_config(user)
    assert cfg["grammar"]["measure_radix"] == 10
    assert "ignoring config" in caplog.text


def test_invalid_radix_is_rejected() -> None:
    with pytest.raises(ValueError):
        get_grammar({"grammar": {"measure_radix": 16}})


def test_ticks_per_beat_accessor() -> None:
    assert get_ticks_per_beat({"export": {"ticks_per_beat": "960"}}) == 960
    assert get_ticks_per_beat({"export": {"ticks_per_beat": "lots"}}) == 480
    assert get_ticks_per_beat(None) == 480
