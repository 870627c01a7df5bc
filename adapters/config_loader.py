"""Config loading helpers."""
from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from config import CONFIG

ENV_OVERRIDES = {
    "SUPABASE_URL": ("rest", "url"),
    "SUPABASE_ANON_KEY": ("rest", "anon_key"),
    "ROSTER_LOCATION_ID": ("roster", "location_id"),
}


def read_config_file(path: str | Path) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    with path.open("r", encoding="utf-8") as fh:
        if path.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(fh)
        else:
            data = json.load(fh)
    return data or {}


def merge_config(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(out.get(key), Mapping):
            out[key] = merge_config(out[key], value)
        else:
            out[key] = copy.deepcopy(value)
    return out


def load_config(path: str | Path | None = None, env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Return CONFIG merged with an optional file and environment overrides."""
    cfg = copy.deepcopy(CONFIG)
    if path:
        cfg = merge_config(cfg, read_config_file(path))
    env = os.environ if env is None else env
    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            cfg.setdefault(section, {})[key] = value
    return cfg
