from __future__ import annotations

from pathlib import Path

import pytest

from chart_config.catalog import (
    DEFAULT_FILTER_CATALOG,
    FilterCatalog,
    FilterDefinition,
    load_filter_catalog,
)
from chart_config.errors import ConfigFileError

FIXTURES = Path(__file__).parent / "fixtures"


def test_default_catalog() -> None:
    assert DEFAULT_FILTER_CATALOG.ids == [
        "filter_shop",
        "filter_method",
        "filter_country",
        "filter_date",
    ]
    date = DEFAULT_FILTER_CATALOG.get("filter_date")
    assert date.source_filter_key == "Date"
    assert date.select_type == "Date range"
    assert DEFAULT_FILTER_CATALOG.display_name("filter_country") == "Country"
    assert DEFAULT_FILTER_CATALOG.display_name("filter_unknown") == "filter_unknown"


def test_load_catalog_fixture() -> None:
    catalog = load_filter_catalog(FIXTURES / "catalog.yaml")
    assert "filter_region" in catalog
    assert "filter_country" not in catalog
    assert len(catalog) == 2


def test_duplicate_ids_rejected() -> None:
    shop = FilterDefinition("filter_shop", "Shop", "Shop", "Multi select")
    with pytest.raises(ConfigFileError, match="Duplicate"):
        FilterCatalog([shop, shop])


@pytest.mark.parametrize(
    "text, match",
    [
        ("filters: []\n", "non-empty list"),
        ("filters:\n  - just-a-string\n", "must be a mapping"),
        ("filters:\n  - id: shop\n", "filter_<name>"),
    ],
)
def test_bad_catalog_files(tmp_path: Path, text: str, match: str) -> None:
    path = tmp_path / "catalog.yaml"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigFileError, match=match):
        load_filter_catalog(path)
