# Subtitle Presets - Named subtitle styles behind an injected key-value store

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from pydantic import TypeAdapter, ValidationError

from clip_models import SubtitlePreset, SubtitleStyle
from clip_utils import IdFactory, new_segment_id

logger = logging.getLogger(__name__)

PRESETS_KEY = 'clipforge:subtitle-presets'

_presets_adapter = TypeAdapter(List[SubtitlePreset])


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self, data: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileKeyValueStore:
    """Key-value pairs persisted as one JSON object on disk"""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable store {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)


class SubtitlePresetStore:
    """Load, save and delete subtitle presets"""

    def __init__(
        self,
        store: KeyValueStore,
        key: str = PRESETS_KEY,
        id_factory: IdFactory = new_segment_id
    ):
        self.store = store
        self.key = key
        self.id_factory = id_factory

    def load(self) -> List[SubtitlePreset]:
        """All presets; corrupt stored data reads as none"""
        raw = self.store.get(self.key)
        if not raw:
            return []
        try:
            return _presets_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding corrupt subtitle presets: {e.error_count()} errors")
            return []

    def _write(self, presets: List[SubtitlePreset]) -> None:
        self.store.set(self.key, _presets_adapter.dump_json(presets).decode('utf-8'))

    def save(self, name: str, style: SubtitleStyle) -> SubtitlePreset:
        presets = self.load()
        preset = SubtitlePreset(id=self.id_factory(), name=name, style=style.model_copy())
        presets.append(preset)
        self._write(presets)
        logger.info(f"Saved subtitle preset '{name}' ({preset.id})")
        return preset

    def get(self, preset_id: str) -> Optional[SubtitlePreset]:
        return next((p for p in self.load() if p.id == preset_id), None)

    def delete(self, preset_id: str) -> bool:
        """Remove a preset; returns whether it existed"""
        presets = self.load()
        remaining = [p for p in presets if p.id != preset_id]
        self._write(remaining)
        return len(remaining) != len(presets)
