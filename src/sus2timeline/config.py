# src/sus2timeline/config.py
from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional
import copy
import logging
import yaml
from .timeline import Grammar, DEFAULT_MEASURE_RADIX, DEFAULT_EMPTY_SLOT

log = logging.getLogger(__name__)

# package root: .../src/sus2timeline
PKG_ROOT = Path(__file__).resolve().parent
DEFAULT_CFG_PATH = PKG_ROOT / "config.default.yaml"
USER_CFG_PATH = Path.home() / ".config" / "sus2timeline" / "config.yaml"

DEFAULT_TPB = 480

def _safe_load(path: Path) -> Dict[str, Any]:
    try:
        if path.exists():
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
            return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError) as exc:
        # an unreadable config must not stop a chart from parsing
        log.warning("ignoring config %s: %s", path, exc)
    return {}

def _deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(a)
    for k, v in (b or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = copy.deepcopy(v)
    return out

def load_config(
    user_path: Optional[Path] = None,
    default_path: Optional[Path] = None,
) -> Dict[str, Any]:
    """
    Loads the packaged defaults merged with user overrides.
    Top-level sections: 'grammar', 'unsupported_notes', 'export', 'watch'.
    """
    dpath = Path(default_path) if default_path else DEFAULT_CFG_PATH
    upath = Path(user_path) if user_path else USER_CFG_PATH

    defaults = _safe_load(dpath)
    user = _safe_load(upath)
    cfg = _deep_merge(defaults, user)

    # minimal defaults when the packaged file is missing
    cfg.setdefault("grammar", {})
    cfg["grammar"].setdefault("measure_radix", DEFAULT_MEASURE_RADIX)
    cfg["grammar"].setdefault("empty_slot", DEFAULT_EMPTY_SLOT)
    cfg.setdefault("unsupported_notes", "ignore")
    cfg.setdefault("export", {})
    cfg["export"].setdefault("ticks_per_beat", DEFAULT_TPB)

    return cfg

def get_grammar(cfg: Optional[Dict[str, Any]]) -> Grammar:
    g = (cfg or {}).get("grammar") or {}
    radix = int(g.get("measure_radix", DEFAULT_MEASURE_RADIX))
    if radix not in (10, 36):
        raise ValueError(f"grammar.measure_radix must be 10 or 36, got {radix}")
    return Grammar(measure_radix=radix, empty_slot=str(g.get("empty_slot", DEFAULT_EMPTY_SLOT)))

def get_ticks_per_beat(cfg: Optional[Dict[str, Any]]) -> int:
    try:
        return int(((cfg or {}).get("export") or {}).get("ticks_per_beat", DEFAULT_TPB))
    except (TypeError, ValueError):
        return DEFAULT_TPB
