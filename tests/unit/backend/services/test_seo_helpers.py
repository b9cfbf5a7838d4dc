"""Unit tests for SEO domain handling and analysis parsing."""

import pytest

from portal.backend.services.seo import normalize_domain, parse_recommendations


class TestNormalizeDomain:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("Example.com", "example.com"),
            ("https://example.com/", "example.com"),
            ("http://shop.example.com", "shop.example.com"),
            ("  example.com//  ", "example.com"),
        ],
    )
    def test_normalizes(self, value, expected):
        assert normalize_domain(value) == expected


class TestParseRecommendations:
    def test_plain_array(self):
        text = '[{"url": "https://example.com/", "type": "title", "priority": "high"}]'
        assert parse_recommendations(text)[0]["priority"] == "high"

    def test_code_fence_and_prose(self):
        text = 'Here you go:\n```json\n[{"url": "/a", "type": "meta_description"}]\n```\nGood luck.'
        assert parse_recommendations(text) == [{"url": "/a", "type": "meta_description"}]

    def test_non_objects_dropped(self):
        assert parse_recommendations('[1, "x", {"url": "/b"}]') == [{"url": "/b"}]

    @pytest.mark.parametrize("text", ["", "no json here", "[not json]", "] backwards ["])
    def test_unparseable_is_empty(self, text):
        assert parse_recommendations(text) == []
