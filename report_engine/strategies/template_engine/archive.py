"""Container encoding and archive hygiene.

Templates arrive as raw bytes or base64 data URIs. Every pass re-packs
its output with fixed member timestamps so identical inputs produce
byte-identical documents, and checks the archive before handing it on.
"""

import base64
import binascii
import io
import zipfile
import zlib

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# Earliest timestamp a zip member can carry
FIXED_TIMESTAMP = (1980, 1, 1, 0, 0, 0)


def decode_container(container: bytes | bytearray | str) -> bytes:
    """Accept raw bytes or a "data:<mime>;base64,<payload>" string.

    Raises:
        ValueError: If a string is not decodable base64.
        TypeError: For any other input type.
    """
    if isinstance(container, (bytes, bytearray, memoryview)):
        return bytes(container)
    if not isinstance(container, str):
        raise TypeError(f"Unsupported container type: {type(container).__name__}")

    text = container.strip()
    if text.startswith("data:"):
        header, sep, payload = text.partition(",")
        if not sep or ";base64" not in header:
            raise ValueError("Template data URI must be base64 encoded")
    else:
        payload = text

    try:
        data = base64.b64decode(payload)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Template payload is not valid base64: {e}") from e
    if not data:
        raise ValueError("Template payload is empty")
    return data


def encode_data_uri(data: bytes, mime: str = DOCX_MIME) -> str:
    """Encode bytes as a base64 data URI."""
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def normalize_archive(data: bytes) -> bytes:
    """Re-pack a zip with deterministic member metadata, preserving order."""
    out = io.BytesIO()
    with zipfile.ZipFile(io.BytesIO(data)) as src, zipfile.ZipFile(
        out, "w", compression=zipfile.ZIP_DEFLATED
    ) as dst:
        for info in src.infolist():
            member = zipfile.ZipInfo(info.filename, date_time=FIXED_TIMESTAMP)
            member.compress_type = zipfile.ZIP_DEFLATED
            member.external_attr = 0o644 << 16
            dst.writestr(member, src.read(info.filename))
    return out.getvalue()


def check_archive(data: bytes) -> None:
    """Verify the bytes are an intact OOXML package.

    Raises:
        ValueError: If the archive is unreadable, corrupt or incomplete.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            bad_member = zf.testzip()
            names = set(zf.namelist())
    except (zipfile.BadZipFile, zlib.error, EOFError) as e:
        raise ValueError(f"not a readable zip archive: {e}") from e

    if bad_member is not None:
        raise ValueError(f"corrupt archive member {bad_member}")
    if "[Content_Types].xml" not in names:
        raise ValueError("archive has no [Content_Types].xml part")
