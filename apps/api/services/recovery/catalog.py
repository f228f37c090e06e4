"""
Exercise Catalog

The fixed, versioned list of approved exercises a protocol may reference.
Loaded once per process and read-only afterwards.

Matching is exact on the canonical name, case-insensitive, surrounding
whitespace ignored. No fuzzy matching.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from services.recovery.errors import CatalogError
from services.recovery.schemas import EquipmentPreference

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMA_VERSION = 1
DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "data" / "exercise_catalog.json"


class EquipmentClass(str, Enum):
    BODYWEIGHT = "bodyweight"
    BAND = "band"


@dataclass(frozen=True)
class CatalogExercise:
    id: str
    canonical_name: str
    body_region: str
    equipment_class: EquipmentClass

    @property
    def key(self) -> str:
        return normalize_name(self.canonical_name)


def normalize_name(name: str) -> str:
    return (name or "").strip().lower()


class ExerciseCatalog:
    """Immutable, indexed view over the approved exercises."""

    def __init__(self, exercises: Iterable[CatalogExercise], version: str = "unversioned"):
        self.version = version
        self._exercises: Tuple[CatalogExercise, ...] = tuple(exercises)
        self._by_name: Dict[str, CatalogExercise] = {}
        by_region: Dict[str, List[CatalogExercise]] = defaultdict(list)

        for ex in self._exercises:
            if ex.key in self._by_name:
                raise CatalogError(f"Duplicate catalog name: {ex.canonical_name!r}")
            self._by_name[ex.key] = ex
            by_region[ex.body_region].append(ex)

        self._by_region: Dict[str, Tuple[CatalogExercise, ...]] = {
            region: tuple(items) for region, items in by_region.items()
        }

    def __len__(self) -> int:
        return len(self._exercises)

    def __iter__(self):
        return iter(self._exercises)

    @property
    def exercises(self) -> Tuple[CatalogExercise, ...]:
        return self._exercises

    @property
    def regions(self) -> List[str]:
        return sorted(self._by_region)

    def resolve(self, name: str) -> Optional[CatalogExercise]:
        """Return the single entry whose canonical name matches, or None."""
        return self._by_name.get(normalize_name(name))

    def by_region(self, region: str) -> Tuple[CatalogExercise, ...]:
        return self._by_region.get((region or "").strip().lower(), ())

    def eligible(self, preference: EquipmentPreference) -> List[CatalogExercise]:
        """Exercises usable under an equipment preference. Unknown allows everything."""
        if preference == EquipmentPreference.BODYWEIGHT_ONLY:
            return [ex for ex in self._exercises if ex.equipment_class == EquipmentClass.BODYWEIGHT]
        return list(self._exercises)


def _parse_entry(raw: dict, index: int) -> CatalogExercise:
    try:
        ex_id = str(raw["id"]).strip()
        name = str(raw["name"]).strip()
        region = str(raw["bodyRegion"]).strip().lower()
        equipment = str(raw["equipment"]).strip().lower()
    except (KeyError, TypeError) as e:
        raise CatalogError(f"Catalog entry #{index} is missing a field: {e}") from e

    if not ex_id or not name or not region:
        raise CatalogError(f"Catalog entry #{index} has an empty id, name or bodyRegion")

    try:
        equipment_class = EquipmentClass(equipment)
    except ValueError as e:
        raise CatalogError(f"Catalog entry {name!r} has unknown equipment {equipment!r}") from e

    return CatalogExercise(id=ex_id, canonical_name=name, body_region=region, equipment_class=equipment_class)


def load_catalog(path: Optional[Path] = None) -> ExerciseCatalog:
    """
    Load and validate a catalog file.

    Raises CatalogError on unreadable files, unsupported schema versions,
    unknown equipment classes or duplicate names.
    """
    path = Path(path) if path else DEFAULT_CATALOG_PATH
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Cannot read exercise catalog at {path}: {e}") from e

    if not isinstance(data, dict):
        raise CatalogError("Exercise catalog must be a JSON object")

    schema_version = data.get("schemaVersion")
    if schema_version != SUPPORTED_SCHEMA_VERSION:
        raise CatalogError(
            f"Unsupported catalog schemaVersion {schema_version!r} (expected {SUPPORTED_SCHEMA_VERSION})"
        )

    entries = data.get("exercises")
    if not isinstance(entries, list) or not entries:
        raise CatalogError("Exercise catalog has no exercises")

    catalog = ExerciseCatalog(
        (_parse_entry(raw, i) for i, raw in enumerate(entries)),
        version=str(data.get("version") or "unversioned"),
    )
    logger.info(
        "Exercise catalog loaded",
        extra={"extra_fields": {"catalog_version": catalog.version, "exercise_count": len(catalog)}},
    )
    return catalog


@lru_cache(maxsize=1)
def get_catalog() -> ExerciseCatalog:
    """Process-wide catalog, loaded on first use from RECOVERY_CATALOG_PATH or the bundled file."""
    from core.config import settings

    path = Path(settings.RECOVERY_CATALOG_PATH) if settings.RECOVERY_CATALOG_PATH else None
    return load_catalog(path)
