"""
Tests for QueryOptions and PatchItem.
"""

import pytest
import pymongo
from bson import ObjectId
from pydantic import ValidationError

from mongo_service import PatchItem, QueryOptions


class TestQueryOptions:
    """Test query option validation and sort translation."""

    def test_defaults_impose_no_constraint(self) -> None:
        options = QueryOptions()

        assert options.limit is None
        assert options.skip is None
        assert options.sort_spec() == []

    @pytest.mark.parametrize(
        "direction,expected",
        [
            (1, pymongo.ASCENDING),
            ("asc", pymongo.ASCENDING),
            ("ascending", pymongo.ASCENDING),
            (-1, pymongo.DESCENDING),
            ("desc", pymongo.DESCENDING),
            ("descending", pymongo.DESCENDING),
        ],
    )
    def test_sort_directions(self, direction: object, expected: int) -> None:
        options = QueryOptions(sort={"views": direction})

        assert options.sort_spec() == [("views", expected)]

    def test_sort_keeps_field_order(self) -> None:
        options = QueryOptions(sort={"published": -1, "views": 1, "title": 1})

        assert [field for field, _ in options.sort_spec()] == [
            "published",
            "views",
            "title",
        ]

    @pytest.mark.parametrize(
        "data",
        [
            {"limit": -1},
            {"skip": -5},
            {"sort": {"views": 2}},
            {"sort": {"views": "up"}},
            {"sort": {}},
            {"offset": 3},
        ],
    )
    def test_invalid_options_are_rejected(self, data: dict) -> None:
        with pytest.raises(ValidationError):
            QueryOptions.model_validate(data)


class TestPatchItem:
    """Test patch item construction."""

    def test_accepts_string_and_object_ids(self) -> None:
        object_id = ObjectId()

        assert PatchItem(id=str(object_id), data={}).id == str(object_id)
        assert PatchItem(id=object_id, data={}).id is object_id

    def test_requires_data(self) -> None:
        with pytest.raises(ValidationError):
            PatchItem.model_validate({"id": "x"})
