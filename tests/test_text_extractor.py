"""
Tests for plain text extraction.
"""

import json
import os
from unittest.mock import patch

import pytest

from studyset.services.text_extractor import (
    _page_text_from_json,
    extract_pdf_text,
    extract_text,
    is_insufficient,
)


def _fake_convert(json_data):
    """Stand-in for opendataloader_pdf.convert that writes its JSON output."""
    def _convert(input_path, output_dir, format, quiet):
        stem = os.path.splitext(os.path.basename(input_path))[0]
        with open(os.path.join(output_dir, f"{stem}.json"), "w", encoding="utf-8") as f:
            json.dump(json_data, f)
    return _convert


class TestIsInsufficient:

    def test_short_text_is_insufficient(self):
        assert is_insufficient("x" * 49)

    def test_threshold_text_is_sufficient(self):
        assert not is_insufficient("x" * 50)

    def test_empty_is_insufficient(self):
        assert is_insufficient("")

    def test_custom_threshold(self):
        assert not is_insufficient("short", min_length=3)


class TestPageTextFromJson:

    def test_groups_text_by_page(self):
        json_data = {
            "elements": [
                {"type": "heading", "page": 2, "text": "Second"},
                {"type": "paragraph", "page": 1, "text": "First"},
                {"type": "paragraph", "page": 1, "text": "line"},
            ]
        }

        assert _page_text_from_json(json_data) == "First line\n\nSecond\n\n"

    def test_walks_nested_kids(self):
        json_data = {
            "kids": [
                {
                    "type": "list",
                    "page number": 1,
                    "kids": [
                        {"type": "list item", "page number": 1, "content": "alpha"},
                        {"type": "list item", "page number": 1, "content": "beta"},
                    ],
                }
            ]
        }

        assert _page_text_from_json(json_data) == "alpha beta\n\n"

    def test_image_only_document_is_empty(self):
        json_data = {"elements": [{"type": "image", "page": 1}]}

        assert _page_text_from_json(json_data) == ""


class TestExtractPdfText:

    def test_reads_opendataloader_json(self):
        json_data = {"elements": [{"type": "paragraph", "page": 1, "text": "Photosynthesis"}]}

        with patch("studyset.services.text_extractor.convert", side_effect=_fake_convert(json_data)):
            text = extract_pdf_text(b"%PDF-1.4")

        assert text == "Photosynthesis\n\n"

    def test_opendataloader_failure_raises_value_error(self):
        with patch("studyset.services.text_extractor.convert", side_effect=RuntimeError("Java not found")):
            with pytest.raises(ValueError, match="Failed to extract PDF text"):
                extract_pdf_text(b"%PDF-1.4")


class TestExtractText:

    def test_plain_text_is_decoded(self):
        assert extract_text("Mitochondria are organelles".encode(), "text/plain") == "Mitochondria are organelles"

    def test_utf8_bom_is_dropped(self):
        assert extract_text(b"\xef\xbb\xbfhello", "text/markdown") == "hello"

    def test_images_yield_no_text(self):
        assert extract_text(b"\x89PNG\r\n\x1a\n", "image/png") == ""

    def test_scanned_pdf_yields_empty_string(self):
        json_data = {"elements": [{"type": "image", "page": 1}]}

        with patch("studyset.services.text_extractor.convert", side_effect=_fake_convert(json_data)):
            assert extract_text(b"%PDF-1.4", "application/pdf") == ""

    def test_pdf_failure_is_absorbed(self):
        with patch("studyset.services.text_extractor.convert", side_effect=RuntimeError("boom")):
            assert extract_text(b"%PDF-1.4", "application/pdf") == ""

    @pytest.mark.parametrize("mime_type", ["", "application/octet-stream", "text/plain", "bogus/type"])
    def test_binary_input_never_raises(self, mime_type):
        assert extract_text(b"\xff\xfe\x00\x81garbage", mime_type) == ""
