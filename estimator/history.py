"""Recent analyses, newest first, kept in a small JSON file.

Images are stored as compressed JPEG data URLs (thumbnail + preview) so the
file stays small.
"""
from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path

from pydantic import ValidationError

from estimator.imaging import make_preview, make_thumbnail
from estimator.models import AnalysisConfig, EstimationResult, HistoryItem

logger = logging.getLogger(__name__)

MAX_ITEMS = 10


def now_ms() -> int:
    return int(time.time() * 1000)


class HistoryStore:
    def __init__(self, path: str | os.PathLike, max_items: int = MAX_ITEMS):
        self.path = Path(path)
        self.max_items = max_items

    def _write(self, items: list[HistoryItem]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        payload = [item.to_dict() for item in items]
        tmp.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self.path)

    def get_history(self) -> list[HistoryItem]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return [HistoryItem.model_validate(entry) for entry in data]
        except (OSError, ValueError, TypeError, ValidationError) as e:
            logger.warning("Failed to load history: %s", e)
            return []

    def get_history_item(self, item_id: str) -> HistoryItem | None:
        for item in self.get_history():
            if item.id == item_id:
                return item
        return None

    def save_history_item(
        self,
        result: EstimationResult,
        config: AnalysisConfig,
        image_data_url: str,
    ) -> HistoryItem | None:
        existing = self.get_history()

        timestamp = now_ms()
        taken = {item.id for item in existing}
        stamp = timestamp
        while str(stamp) in taken:
            stamp += 1

        item = HistoryItem(
            id=str(stamp),
            timestamp=timestamp,
            result=result,
            config=config,
            thumbnail=make_thumbnail(image_data_url),
            preview_image=make_preview(image_data_url),
        )

        try:
            self._write([item, *existing][: self.max_items])
        except OSError as e:
            logger.warning("Failed to save history: %s", e)
            return None
        return item

    def delete_history_item(self, item_id: str) -> list[HistoryItem]:
        try:
            remaining = [item for item in self.get_history() if item.id != item_id]
            self._write(remaining)
            return remaining
        except OSError as e:
            logger.warning("Failed to delete history item %s: %s", item_id, e)
            return []

    def clear_history(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
