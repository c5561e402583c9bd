"""Seed datasets that every record service starts from."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type

from .models import Activity, CRMBaseModel, Contact, Deal

DEFAULT_SEED_DIR = Path(__file__).resolve().parent / "data"

SEED_MODELS: Dict[str, Type[CRMBaseModel]] = {
    "contacts": Contact,
    "deals": Deal,
    "activities": Activity,
}


@lru_cache(maxsize=None)
def _read_seed_file(path: Path) -> Tuple[Dict[str, Any], ...]:
    """Read a seed file once; later loads reuse the parsed rows."""
    with path.open("r", encoding="utf-8") as fh:
        rows = json.load(fh)
    if not isinstance(rows, list):
        raise ValueError(f"Seed file {path} must contain a JSON array.")
    return tuple(rows)


def load_seed(kind: str, seed_dir: Optional[Path] = None) -> List[CRMBaseModel]:
    """Return fresh model instances for the ``kind`` seed dataset."""
    if kind not in SEED_MODELS:
        formatted = ", ".join(sorted(SEED_MODELS))
        raise ValueError(f"Unknown seed kind '{kind}' (expected one of: {formatted}).")
    model_cls = SEED_MODELS[kind]
    path = (seed_dir or DEFAULT_SEED_DIR).resolve() / f"{kind}.json"
    return [model_cls.model_validate(row) for row in _read_seed_file(path)]
