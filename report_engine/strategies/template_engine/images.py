"""Image preparation for the picture pass.

Each payload is fully decoded with Pillow before it touches the document,
so a broken upload fails its own slot instead of the whole render.
"""

import io
import logging
from dataclasses import dataclass

from docx.image.exceptions import UnrecognizedImageError
from docx.image.image import Image as DocxImage
from docx.shared import Emu
from PIL import Image, UnidentifiedImageError

from report_engine.interfaces.errors import ImageDecodeError
from report_engine.interfaces.template import ImagePayload

logger = logging.getLogger(__name__)

EMU_PER_PIXEL = 9525

# Formats python-docx can embed without conversion
NATIVE_FORMATS = {"PNG", "JPEG", "GIF", "BMP", "TIFF"}


@dataclass(frozen=True)
class PreparedImage:
    """Decoded image bytes with their final on-page size in pixels."""

    data: bytes
    width: int
    height: int

    @property
    def width_emu(self) -> Emu:
        return Emu(self.width * EMU_PER_PIXEL)

    @property
    def height_emu(self) -> Emu:
        return Emu(self.height * EMU_PER_PIXEL)


def resolve_size(
    width: int | None,
    height: int | None,
    measured: tuple[int, int],
    fallback: tuple[int, int],
) -> tuple[int, int]:
    """Pick the rendered size: configured, then measured, then fallback.

    With only one configured dimension, the other follows the image's
    aspect ratio.
    """
    if width and height:
        return width, height

    measured_w, measured_h = measured
    if measured_w > 0 and measured_h > 0:
        if width:
            return width, max(1, round(width * measured_h / measured_w))
        if height:
            return max(1, round(height * measured_w / measured_h)), height
        return measured_w, measured_h

    return width or fallback[0], height or fallback[1]


def prepare_image(name: str, payload: ImagePayload, fallback: tuple[int, int]) -> PreparedImage:
    """Decode, convert if needed, and size one image.

    Args:
        name: Image token name, used in error reports.
        payload: Raw bytes and configured size.
        fallback: (width, height) in pixels when nothing else applies.

    Returns:
        PreparedImage ready for embedding.

    Raises:
        ImageDecodeError: If the bytes are not a decodable image.
    """
    if not payload.data:
        raise ImageDecodeError(name, "image data is empty or not valid base64")

    try:
        with Image.open(io.BytesIO(payload.data)) as img:
            img.load()
            measured = img.size
            if img.format in NATIVE_FORMATS:
                data = payload.data
            else:
                logger.debug(f"Converting {img.format} image for {name} to PNG")
                data = _to_png(img)
    except (UnidentifiedImageError, OSError, EOFError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise ImageDecodeError(name, f"image could not be decoded: {e}") from e

    try:
        DocxImage.from_blob(data)
    except UnrecognizedImageError as e:
        raise ImageDecodeError(name, f"image format is not embeddable: {e}") from e

    width, height = resolve_size(payload.width, payload.height, measured, fallback)
    return PreparedImage(data=data, width=width, height=height)


def _to_png(img: Image.Image) -> bytes:
    if img.mode not in ("1", "L", "LA", "P", "RGB", "RGBA"):
        img = img.convert("RGBA")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
