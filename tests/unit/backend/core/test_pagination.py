"""
Unit Tests for Pagination Utilities.

Tests the pagination dependency and the paginated envelope builder.
"""

from pydantic import BaseModel

from portal.backend.core.config import get_app_config
from portal.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)


class _Item(BaseModel):
    id: str
    name: str


class TestGetPaginationParams:
    """Tests for the limit/offset dependency."""

    def test_missing_limit_uses_default(self):
        params = get_pagination_params(limit=None, offset=0)
        assert params == PaginationParams(
            limit=get_app_config().application.pagination.default_limit,
            offset=0,
        )

    def test_limit_clamped_to_max(self):
        """Should never hand more than max_limit rows to a repository."""
        max_limit = get_app_config().application.pagination.max_limit
        params = get_pagination_params(limit=max_limit * 10, offset=20)
        assert params.limit == max_limit
        assert params.offset == 20

    def test_small_limit_kept(self):
        assert get_pagination_params(limit=5, offset=0).limit == 5


class TestCreatePaginatedResponse:
    """Tests for create_paginated_response."""

    def test_creates_valid_response_structure(self):
        items = [{"id": "1", "name": "Acme"}, {"id": "2", "name": "Globex"}]
        result = create_paginated_response(items=items, item_schema=_Item, total=2, limit=50)

        assert result["success"] is True
        assert result["error"] is None
        assert result["data"] == items
        assert result["pagination"] == {"total": 2, "limit": 50, "offset": 0, "has_more": False}

    def test_has_more_when_rows_remain(self):
        items = [{"id": str(i), "name": f"n{i}"} for i in range(10)]
        result = create_paginated_response(items=items, item_schema=_Item, total=25, limit=10, offset=10)
        assert result["pagination"]["has_more"] is True

    def test_has_more_false_on_last_page(self):
        items = [{"id": str(i), "name": f"n{i}"} for i in range(5)]
        result = create_paginated_response(items=items, item_schema=_Item, total=25, limit=10, offset=20)
        assert result["pagination"]["has_more"] is False

    def test_includes_request_id(self):
        result = create_paginated_response(
            items=[], item_schema=_Item, total=0, limit=10, request_id="req-42",
        )
        assert result["metadata"]["request_id"] == "req-42"

    def test_validates_items_through_schema(self):
        """Should serialize attribute objects through the item schema."""

        class Row:
            def __init__(self, id, name, secret):
                self.id = id
                self.name = name
                self.secret = secret

        class _AttrItem(_Item):
            model_config = {"from_attributes": True}

        result = create_paginated_response(
            items=[Row("1", "Acme", "hidden")], item_schema=_AttrItem, total=1, limit=10,
        )
        assert result["data"] == [{"id": "1", "name": "Acme"}]

    def test_handles_empty_items(self):
        result = create_paginated_response(items=[], item_schema=_Item, total=0, limit=10)
        assert result["data"] == []
        assert result["pagination"]["has_more"] is False
