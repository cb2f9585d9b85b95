"""Placeholder mapping.

Turns merged data into the flat tables the renderer consumes:
text tokens -> normalized strings, and image tokens -> payloads with
their configured size. Line endings are normalized here and nowhere else.
"""

import base64
import binascii
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from report_engine.assembly.merger import is_empty
from report_engine.assembly.schema import SchemaModel, token_name
from report_engine.interfaces.template import ImagePayload, TextMap

logger = logging.getLogger(__name__)


class ImageSlot(BaseModel):
    """One image-shaped substitution target from the image-size config."""

    placeholder: str = Field(min_length=1, description="Image token, e.g. {%Image_Front}")
    card_name: str = Field(default="", alias="cardName", description="Display name in the UI")
    width: int | None = Field(default=None, gt=0, description="Width in pixels")
    height: int | None = Field(default=None, gt=0, description="Height in pixels")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("width", "height", mode="before")
    @classmethod
    def coerce_size(cls, v: Any) -> Any:
        """Sizes are often saved from form inputs as text."""
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
            return round(float(v))
        if isinstance(v, float):
            return round(v)
        return v


ImageSlots = TypeAdapter(list[ImageSlot])


def parse_image_slots(raw: Any) -> list[ImageSlot]:
    """Validate the image-size configuration array.

    Raises:
        pydantic.ValidationError: If the array or an entry is malformed.
    """
    return ImageSlots.validate_python(raw)


def normalize_text(value: Any) -> str:
    """Render a merged value as template-safe text with LF line endings.

    Literal backslash escapes ("\\r\\n", "\\n") and real CRLF/CR all become
    a single LF.
    """
    if is_empty(value):
        return ""
    if isinstance(value, bool):
        text = "Yes" if value else "No"
    elif isinstance(value, float) and value.is_integer():
        text = str(int(value))
    else:
        text = str(value)

    for old in ("\\r\\n", "\\n", "\r\n", "\r"):
        text = text.replace(old, "\n")
    return text


def image_token_name(placeholder: str) -> str:
    """Bare image token: strips "{%...}" or "{{...}}" delimiters."""
    name = placeholder.strip()
    if name.startswith("{%"):
        name = name[2:]
    elif name.startswith("{{"):
        name = name[2:]
    if name.endswith("}}"):
        name = name[:-2]
    elif name.endswith("}"):
        name = name[:-1]
    return name.strip()


def decode_data_uri(value: str | bytes) -> bytes:
    """Return the payload of a base64 data URI; raw bytes pass through.

    Malformed base64 yields b"" so the failure surfaces as a decode error
    for that one slot at render time.
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    payload = value.split(",", 1)[1] if value.startswith("data:") and "," in value else value
    try:
        return base64.b64decode(payload)
    except (binascii.Error, ValueError):
        return b""


class PlaceholderMapper:
    """Maps merged data and images onto template tokens.

    Args:
        extracted_prefix: Placeholder prefix used by the extraction schema.
        template_prefix: Prefix the same fields carry inside templates.
    """

    def __init__(self, extracted_prefix: str = "extracted_", template_prefix: str = "Replace_") -> None:
        self._extracted_prefix = extracted_prefix
        self._template_prefix = template_prefix

    def map_text(self, merged: Mapping[str, Any], model: SchemaModel) -> TextMap:
        """Build the text table and the non-empty field count.

        Args:
            merged: Output of the data merger.
            model: The schema the data was merged against.

        Returns:
            TextMap with one entry per leaf and one loop per repeated section.
        """
        values: dict[str, str] = {}
        filled = 0
        unfilled_marker = f"[{self._extracted_prefix}"

        for path, leaf in model.traverse_leaves():
            token = token_name(leaf.placeholder, self._extracted_prefix, self._template_prefix)
            if token in values:
                logger.warning(f"Token {token} at {'.'.join(path)} already mapped; keeping the first value")
                continue
            text = normalize_text(_value_at(merged, path))
            values[token] = text
            # Extraction echoes its own placeholder for fields it could not fill
            if text and not (self._extracted_prefix and text.startswith(unfilled_marker)):
                filled += 1

        loops: dict[str, list[dict[str, str]]] = {}
        for path, node in model.traverse_repeated():
            rows = _value_at(merged, path)
            rows = rows if isinstance(rows, list) else []
            # Every item field gets a cell, even when a row omits it
            columns = dict.fromkeys(node.item.children, "")
            loops[path[-1]] = [
                {**columns, **{str(k): normalize_text(v) for k, v in row.items()}}
                for row in rows
                if isinstance(row, dict)
            ]
            if loops[path[-1]]:
                filled += 1

        logger.info(f"Mapped {len(values)} text tokens ({filled} filled), {len(loops)} loops")
        return TextMap(values=values, loops=loops, filled_count=filled)

    def map_images(
        self,
        image_slots: Iterable[ImageSlot],
        provided_images: Mapping[str, str | bytes],
    ) -> dict[str, ImagePayload]:
        """Pair configured slots with the images supplied for this request.

        Slots without a provided image are omitted; their tokens stay in
        the template untouched. Provided images without a configured slot
        are still rendered, with measured or fallback sizes.
        """
        provided = {
            image_token_name(token): data
            for token, data in provided_images.items()
            if data
        }
        images: dict[str, ImagePayload] = {}

        for slot in image_slots:
            name = image_token_name(slot.placeholder)
            if name not in provided:
                logger.debug(f"No image provided for slot {name}; leaving it unrendered")
                continue
            images[name] = ImagePayload(
                data=decode_data_uri(provided.pop(name)),
                width=slot.width,
                height=slot.height,
            )

        for name, data in provided.items():
            images[name] = ImagePayload(data=decode_data_uri(data))

        return images


def _value_at(data: Mapping[str, Any], path: tuple[str, ...]) -> Any:
    node: Any = data
    for name in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(name)
    return node
