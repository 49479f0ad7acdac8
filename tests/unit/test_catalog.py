"""
Unit tests for item catalogs.
"""

import json

import pytest

from codememory.core.exceptions import ValidationError
from codememory.review.catalog import InMemoryCatalog, JsonCatalog


class TestInMemoryCatalog:
    def test_lookup(self, catalog):
        assert catalog.concept_for("closures-002") == "python-closures"
        assert catalog.concept_for("unknown") is None
        assert catalog.items_in_concept("python-generators") == ["generators-001", "generators-002"]
        assert catalog.items_in_concept("missing") == []
        assert len(catalog.all_items()) == 5
        assert catalog.concepts() == ["python-closures", "python-generators"]

    def test_item_in_two_concepts(self):
        with pytest.raises(ValidationError):
            InMemoryCatalog({"a": ["x"], "b": ["x"]})

    def test_repeated_item_in_one_concept(self):
        catalog = InMemoryCatalog({"a": ["x", "x", "y"]})
        assert catalog.items_in_concept("a") == ["x", "y"]

    def test_returns_copies(self, catalog):
        catalog.items_in_concept("python-closures").append("sneaky")
        assert "sneaky" not in catalog.items_in_concept("python-closures")


class TestJsonCatalog:
    def test_from_file(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"concepts": {"decorators": ["dec-1", "dec-2"]}}))

        catalog = JsonCatalog.from_file(path)

        assert catalog.concept_for("dec-2") == "decorators"
        assert catalog.all_items() == ["dec-1", "dec-2"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError, match="Cannot read"):
            JsonCatalog.from_file(tmp_path / "nope.json")

    @pytest.mark.parametrize(
        "content",
        ["not json", '{"items": []}', '{"concepts": {"a": "not-a-list"}}'],
    )
    def test_malformed(self, tmp_path, content):
        path = tmp_path / "catalog.json"
        path.write_text(content)
        with pytest.raises(ValidationError, match="Malformed"):
            JsonCatalog.from_file(path)
