#!/usr/bin/env python3
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict

_BASE_DIR = Path(__file__).resolve().parent
_CONFIG_PATH = Path(os.environ.get("SIM_CONFIG_PATH", _BASE_DIR / "config" / "sim_config.json"))


def _load_config() -> Dict[str, Any]:
    if not _CONFIG_PATH.exists():
        raise FileNotFoundError(f"Config file not found: {_CONFIG_PATH}")
    with _CONFIG_PATH.open("r", encoding="utf-8") as f:
        return json.load(f)


SIM_CONFIG: Dict[str, Any] = _load_config()
