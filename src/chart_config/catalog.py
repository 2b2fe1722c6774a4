"""Fixed catalog of filters a chart may expose."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

import yaml

from .errors import ConfigFileError
from .references import IDENTIFIER_PATTERN


@dataclass(frozen=True)
class FilterDefinition:
    """A selectable dashboard filter and the source filter it binds to."""

    id: str
    display_name: str
    source_filter_key: str
    select_type: str


class FilterCatalog:
    """Read-only, ordered lookup of filter definitions by id."""

    def __init__(self, definitions: Iterable[FilterDefinition]) -> None:
        self._by_id: dict[str, FilterDefinition] = {}
        for definition in definitions:
            if definition.id in self._by_id:
                raise ConfigFileError(f"Duplicate filter id in catalog: {definition.id!r}")
            self._by_id[definition.id] = definition

    def __contains__(self, filter_id: object) -> bool:
        return filter_id in self._by_id

    def __iter__(self) -> Iterator[FilterDefinition]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    @property
    def ids(self) -> list[str]:
        return list(self._by_id)

    def get(self, filter_id: str) -> FilterDefinition | None:
        return self._by_id.get(filter_id)

    def display_name(self, filter_id: str) -> str:
        definition = self._by_id.get(filter_id)
        return definition.display_name if definition else filter_id


DEFAULT_FILTER_CATALOG = FilterCatalog(
    [
        FilterDefinition("filter_shop", "Shop", "Shop", "Multi select"),
        FilterDefinition("filter_method", "Method", "Method", "Single select"),
        FilterDefinition("filter_country", "Country", "Country", "Multi select"),
        FilterDefinition("filter_date", "Date Range", "Date", "Date range"),
    ]
)


def load_filter_catalog(path: Path) -> FilterCatalog:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except Exception as e:
        raise ConfigFileError(f"Failed to read filter catalog YAML: {path}") from e

    if isinstance(raw, dict):
        raw = raw.get("filters")
    if not isinstance(raw, list) or not raw:
        raise ConfigFileError("catalog.filters must be a non-empty list")

    definitions: list[FilterDefinition] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ConfigFileError(f"catalog.filters[{i}] must be a mapping")
        filter_id = item.get("id")
        if not isinstance(filter_id, str) or not IDENTIFIER_PATTERN.fullmatch(filter_id):
            raise ConfigFileError(
                f"catalog.filters[{i}].id must look like 'filter_<name>'"
            )
        definitions.append(
            FilterDefinition(
                id=filter_id,
                display_name=str(item.get("name") or filter_id),
                source_filter_key=str(item.get("source_filter") or item.get("name") or filter_id),
                select_type=str(item.get("type") or "Multi select"),
            )
        )
    return FilterCatalog(definitions)
