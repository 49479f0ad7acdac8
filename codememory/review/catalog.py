"""
Item catalog lookup.

The engine never owns content; it only needs to know which concept each
item belongs to. Catalogs are loaded from JSON shaped like:

    {"concepts": {"python-closures": ["closures-001", "closures-002"], ...}}
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Protocol

from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from codememory.core.exceptions import ValidationError


class ItemCatalog(Protocol):
    """Read-only item -> concept mapping."""

    def concept_for(self, item_id: str) -> str | None: ...

    def items_in_concept(self, concept_id: str) -> list[str]: ...

    def all_items(self) -> list[str]: ...


class CatalogFile(BaseModel):
    """On-disk catalog format."""

    concepts: dict[str, list[str]]


class InMemoryCatalog:
    """Catalog backed by a concept -> items mapping."""

    def __init__(self, concepts: Mapping[str, Iterable[str]]):
        self._items_by_concept: dict[str, list[str]] = {}
        self._concept_by_item: dict[str, str] = {}
        for concept_id, item_ids in concepts.items():
            items = list(dict.fromkeys(item_ids))
            for item_id in items:
                owner = self._concept_by_item.get(item_id)
                if owner is not None and owner != concept_id:
                    raise ValidationError(
                        f"Item {item_id} listed under both {owner} and {concept_id}"
                    )
                self._concept_by_item[item_id] = concept_id
            self._items_by_concept[concept_id] = items

    def concept_for(self, item_id: str) -> str | None:
        return self._concept_by_item.get(item_id)

    def items_in_concept(self, concept_id: str) -> list[str]:
        return list(self._items_by_concept.get(concept_id, []))

    def all_items(self) -> list[str]:
        return list(self._concept_by_item)

    def concepts(self) -> list[str]:
        return list(self._items_by_concept)


class JsonCatalog(InMemoryCatalog):
    """Catalog loaded from a JSON file."""

    @classmethod
    def from_file(cls, path: Path | str) -> JsonCatalog:
        """
        Load a catalog file.

        Raises:
            ValidationError: File unreadable or not a catalog
        """
        path = Path(path)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ValidationError(f"Cannot read catalog {path}: {e}") from e
        try:
            parsed = CatalogFile.model_validate_json(raw)
        except PydanticValidationError as e:
            raise ValidationError(f"Malformed catalog {path}: {e}") from e

        catalog = cls(parsed.concepts)
        logger.debug(
            f"Loaded catalog {path}: {len(parsed.concepts)} concepts, "
            f"{len(catalog.all_items())} items"
        )
        return catalog
