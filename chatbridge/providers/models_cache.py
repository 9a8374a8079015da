"""On-disk cache of the last known model list.

Lets the model picker keep working in cloud mode or while the local daemon
is down.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from chatbridge.core import get_logger

logger = get_logger(__name__)


class ModelsCache:
    """Read/write ``{"models": [...]}`` at a fixed path. Never raises."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> dict[str, list[dict[str, Any]]]:
        if not self.path.exists():
            return {"models": []}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "Failed to load models from cache",
                data={"path": str(self.path), "error": str(exc)},
            )
            return {"models": []}

        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            return {"models": []}
        logger.info(f"Loaded {len(models)} models from cache")
        return {"models": models}

    def save(self, models: list[dict[str, Any]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps({"models": models}), encoding="utf-8")
        except OSError as exc:
            logger.warning(
                "Failed to cache models",
                data={"path": str(self.path), "error": str(exc)},
            )
            return
        logger.info("Models cached", data={"path": str(self.path), "count": len(models)})
