"""Tests for lenient JSON extraction."""

import pytest

from src.utils.json_extractor import JSONExtractionError, extract_json


class TestExtractJson:
    def test_plain_json(self):
        assert extract_json('{"intent": "acceptance"}') == {"intent": "acceptance"}

    def test_markdown_fence(self):
        content = '```json\n{"intent": "rejection", "confidence": 0.9}\n```'

        assert extract_json(content) == {"intent": "rejection", "confidence": 0.9}

    def test_prose_around_object(self):
        content = 'Here is the analysis:\n{"intent": "unclear"}\nLet me know!'

        assert extract_json(content) == {"intent": "unclear"}

    def test_trailing_commas(self):
        assert extract_json('{"a": [1, 2,], "b": 3,}') == {"a": [1, 2], "b": 3}

    def test_byte_order_mark(self):
        assert extract_json('\ufeff{"a": 1}') == {"a": 1}

    @pytest.mark.parametrize("content", [None, "", "   ", "no json here", "[1, 2, 3]"])
    def test_failures(self, content):
        with pytest.raises(JSONExtractionError) as exc_info:
            extract_json(content)

        assert exc_info.value.attempts
