"""Unit tests for the placeholder mapper."""

import pytest
from pydantic import ValidationError

from report_engine.assembly.mapper import (
    ImageSlot,
    PlaceholderMapper,
    decode_data_uri,
    image_token_name,
    normalize_text,
    parse_image_slots,
    token_name,
)
from report_engine.assembly.merger import merge_sources
from report_engine.assembly.schema import SchemaModel


# =============================================================================
# Text Normalization Tests
# =============================================================================


class TestNormalizeText:
    """Test suite for normalize_text."""

    def test_line_endings_collapse_to_lf(self):
        """Test that a literal backslash-n, a CRLF and a bare CR all become one LF."""
        assert normalize_text("a\\nb") == "a\nb"
        assert normalize_text("a\r\nb") == "a\nb"
        assert normalize_text("a\rb") == "a\nb"
        assert normalize_text("a\\r\\nb") == "a\nb"

    def test_backslash_paths_survive(self):
        """Test that backslashes not followed by n are left alone."""
        assert normalize_text("C:\\reports\\final") == "C:\\reports\\final"

    @pytest.mark.parametrize(
        "value, expected",
        [(None, ""), ("N/A", ""), ("", ""), (True, "Yes"), (False, "No"), (1200.0, "1200"), (3.5, "3.5"), (7, "7")],
    )
    def test_scalar_rendering(self, value, expected):
        """Test how empty sentinels, booleans and numbers render."""
        assert normalize_text(value) == expected


# =============================================================================
# Token Name Tests
# =============================================================================


class TestTokenNames:
    """Test suite for token name helpers."""

    def test_extracted_prefix_is_rewritten(self):
        """Test that extraction placeholders map onto template tokens."""
        assert token_name("[extracted_Address]") == "Replace_Address"

    def test_template_placeholder_kept(self):
        """Test that other placeholders only lose their brackets."""
        assert token_name("[Replace_Owner]") == "Replace_Owner"
        assert token_name("address") == "address"

    def test_custom_prefixes(self):
        """Test that both prefixes are configurable."""
        assert token_name("[ai_Owner]", "ai_", "Tpl_") == "Tpl_Owner"

    @pytest.mark.parametrize("raw", ["{%Image_Front}", "{{Image_Front}}", "Image_Front", " {%Image_Front} "])
    def test_image_token_name(self, raw):
        """Test that image delimiters of either style are stripped."""
        assert image_token_name(raw) == "Image_Front"


# =============================================================================
# Image Slot Tests
# =============================================================================


class TestImageSlots:
    """Test suite for the image-size configuration."""

    def test_parse_config_array(self):
        """Test that sizes saved as text are coerced to integers."""
        slots = parse_image_slots([
            {"placeholder": "{%Image_Front}", "cardName": "Front", "width": "450", "height": 300.4},
            {"placeholder": "{%Image_Map}", "cardName": "Map", "width": "", "height": None},
        ])

        assert slots[0] == ImageSlot(placeholder="{%Image_Front}", card_name="Front", width=450, height=300)
        assert slots[1].width is None
        assert slots[1].height is None

    def test_rejects_missing_placeholder(self):
        """Test that every slot needs a placeholder."""
        with pytest.raises(ValidationError):
            parse_image_slots([{"cardName": "Front"}])

    def test_decode_data_uri(self):
        """Test that data URIs decode and malformed payloads become empty."""
        assert decode_data_uri("data:image/png;base64,aGVsbG8=") == b"hello"
        assert decode_data_uri(b"raw") == b"raw"
        assert decode_data_uri("data:image/png;base64,@@@") == b""


# =============================================================================
# Mapper Tests
# =============================================================================


class TestPlaceholderMapper:
    """Test suite for PlaceholderMapper."""

    @pytest.fixture
    def mapper(self):
        return PlaceholderMapper()

    def test_text_map_tokens(self, mapper, schema_definition):
        """Test that every leaf maps to its template token."""
        model = SchemaModel.parse(schema_definition)
        merged = merge_sources([{"Property Details": {"Address": "1 Main St\r\nSuburb"}}], model)

        text_map = mapper.map_text(merged, model)

        assert text_map.values == {
            "Replace_Address": "1 Main St\nSuburb",
            "Replace_Owner": "",
            "Replace_LandArea": "",
            "Replace_MarketValue": "",
        }
        assert text_map.filled_count == 1

    def test_count_excludes_empty_leaves(self, mapper):
        """Test that 10 leaves with 4 empty values count 6."""
        definition = {"Fields": {f"F{i}": f"[Replace_F{i}]" for i in range(10)}}
        model = SchemaModel.parse(definition)
        data = {"Fields": {f"F{i}": ("" if i < 2 else "N/A" if i < 4 else f"v{i}") for i in range(10)}}

        text_map = mapper.map_text(merge_sources([data], model), model)

        assert len(text_map.values) == 10
        assert text_map.filled_count == 6

    def test_token_collision_keeps_first_value(self, mapper):
        """Test that a schema reusing a token in both forms maps the first leaf only."""
        model = SchemaModel.parse({
            "A": {"Address": "[extracted_Address]"},
            "B": {"Addr2": "[Replace_Address]"},
        })
        data = {"A": {"Address": "1 Main St"}, "B": {"Addr2": "2 Other Rd"}}

        text_map = mapper.map_text(merge_sources([data], model), model)

        assert text_map.values == {"Replace_Address": "1 Main St"}
        assert text_map.filled_count == 1

    def test_unfilled_extraction_echo_not_counted(self, mapper, schema_definition):
        """Test that an extracted placeholder echoed back as a value is mapped but not counted."""
        model = SchemaModel.parse(schema_definition)
        data = {"Property Details": {"Address": "1 Main St", "Owner": "[extracted_Owner]"}}

        text_map = mapper.map_text(merge_sources([data], model), model)

        assert text_map.values["Replace_Owner"] == "[extracted_Owner]"
        assert text_map.filled_count == 1

    def test_loops_fill_every_column(self, mapper, schema_definition):
        """Test that rows carry every item field and a non-empty loop counts once."""
        model = SchemaModel.parse(schema_definition)
        merged = merge_sources(
            [{"comparableSales": [{"address": "2 High St", "price": 410000.0}, {"address": "3 High St"}]}],
            model,
        )

        text_map = mapper.map_text(merged, model)

        assert text_map.loops["comparableSales"] == [
            {"address": "2 High St", "price": "410000"},
            {"address": "3 High St", "price": ""},
        ]
        assert text_map.filled_count == 1

    def test_map_images(self, mapper):
        """Test slot sizes, omitted slots and images without a configured slot."""
        slots = parse_image_slots([
            {"placeholder": "{%Image_Front}", "cardName": "Front", "width": 450, "height": 300},
            {"placeholder": "{%Image_Rear}", "cardName": "Rear", "width": 200, "height": 100},
        ])
        provided = {
            "{%Image_Front}": "data:image/png;base64,aGVsbG8=",
            "Image_Extra": "data:image/png;base64,aGk=",
            "{%Image_Empty}": "",
        }

        images = mapper.map_images(slots, provided)

        assert set(images) == {"Image_Front", "Image_Extra"}
        assert images["Image_Front"].data == b"hello"
        assert (images["Image_Front"].width, images["Image_Front"].height) == (450, 300)
        assert images["Image_Extra"].width is None
