"""Tests for figuro.config.catalog."""

import json

import pytest

from figuro.config import LanguageCatalog
from figuro.errors import CatalogEmpty, ConfigurationMissing
from figuro.models import ItemKind


def write_catalog(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_load_keeps_file_order(tmp_path):
    path = write_catalog(tmp_path / "languages.json", {
        "languages": {
            "Spanish": {"idioms": ["Ser pan comido"]},
            "English": {"idioms": ["Bite the bullet", "  "], "words": ["Serendipity"]},
        }
    })
    catalog = LanguageCatalog.load(path)

    assert catalog.languages == ["Spanish", "English"]
    assert catalog.default_language == "Spanish"
    assert catalog.items("English", ItemKind.IDIOM) == ["Bite the bullet"]
    assert catalog.items("Spanish", ItemKind.WORD) == []


def test_missing_file_is_configuration_missing(tmp_path):
    with pytest.raises(ConfigurationMissing):
        LanguageCatalog.load(str(tmp_path / "nope.json"))


@pytest.mark.parametrize("data", [{}, {"languages": {}}, ["English"]])
def test_empty_catalog_is_configuration_missing(tmp_path, data):
    path = write_catalog(tmp_path / "languages.json", data)
    with pytest.raises(ConfigurationMissing):
        LanguageCatalog.load(path)


def test_pick_random_single_item():
    catalog = LanguageCatalog({"English": {"idioms": ["Bite the bullet"], "words": []}})
    item = catalog.pick_random("English", ItemKind.IDIOM)

    assert item.text == "Bite the bullet"
    assert item.language == "English"
    assert item.kind is ItemKind.IDIOM


def test_pick_random_empty_slice():
    catalog = LanguageCatalog({"English": {"idioms": ["Bite the bullet"], "words": []}})
    with pytest.raises(CatalogEmpty) as exc_info:
        catalog.pick_random("English", ItemKind.WORD)
    assert exc_info.value.kind == "words"

    with pytest.raises(CatalogEmpty):
        catalog.pick_random("Klingon", ItemKind.IDIOM)


def test_supports():
    catalog = LanguageCatalog({"English": {"idioms": ["Bite the bullet"], "words": []}})
    assert catalog.supports("English")
    assert catalog.supports("English", ItemKind.WORD)
    assert not catalog.supports("Klingon")
    assert not catalog.supports("Klingon", ItemKind.IDIOM)
