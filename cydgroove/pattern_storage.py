"""Pattern files: each slot's track rhythms and tempo kept as a small JSON document."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Union

from .engine import TRACK_COUNT, Engine

TRACK_KEYS = tuple(f"track_{i}" for i in range(TRACK_COUNT))


class StorageError(RuntimeError):
    """Raised when a pattern slot cannot be written or read back."""


def _int_or(value: Any, default: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return default


def _as_int(value: Any) -> int:
    if isinstance(value, (int, float)):
        return int(value)
    return 0


class PatternStorage:
    """Saves and restores the engine's track rhythms and tempo, one file per slot."""

    def __init__(self, engine: Engine, directory: Union[str, os.PathLike]) -> None:
        self.engine = engine
        self.directory = Path(directory)
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    def begin(self) -> None:
        """Make sure the pattern directory exists; the store is usable afterwards."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self._ready = False
            raise StorageError(f"cannot prepare {self.directory}: {exc}") from exc
        self._ready = True

    def slot_path(self, slot: int) -> Path:
        if not 0 <= slot <= 255:
            raise ValueError(f"slot {slot} out of range 0..255")
        return self.directory / f"pattern_{slot:02d}.json"

    def save_slot(self, slot: int) -> None:
        """Write the live track settings and tempo to the slot's file."""
        self._require_ready()
        path = self.slot_path(slot)
        doc: dict[str, Any] = {}
        with self.engine.pattern_lock():
            for key, track in zip(TRACK_KEYS, self.engine.tracks):
                doc[key] = {
                    "steps": track.steps,
                    "hits": track.hits,
                    "rotation": track.rotation_offset,
                }
        doc["bpm"] = self.engine.bpm
        try:
            path.write_text(json.dumps(doc), encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"cannot write {path}: {exc}") from exc

    def load_slot(self, slot: int) -> None:
        """Apply a slot's file to the engine; fields missing from it are left as they are."""
        self._require_ready()
        path = self.slot_path(slot)
        if not path.exists():
            raise StorageError(f"no pattern saved in slot {slot}")
        try:
            doc = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise StorageError(f"cannot read {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise StorageError(f"{path} is not valid JSON: {exc}") from exc
        if not isinstance(doc, dict):
            raise StorageError(f"{path} does not hold a JSON object")

        engine = self.engine
        with engine.pattern_lock():
            for key, track in zip(TRACK_KEYS, engine.tracks):
                entry = doc.get(key)
                if not isinstance(entry, dict):
                    continue
                track.steps = _int_or(entry.get("steps"), track.steps)
                track.hits = _int_or(entry.get("hits"), track.hits)
                track.rotation_offset = _int_or(entry.get("rotation"), track.rotation_offset)

        if "bpm" in doc:
            engine.bpm = _as_int(doc["bpm"])

        for track_id in range(TRACK_COUNT):
            engine.recalculate_pattern(track_id)

    def _require_ready(self) -> None:
        if not self._ready:
            raise StorageError("pattern storage has not been started")