"""DOCX template renderer strategy.

Fills Word templates in two strictly sequential passes using python-docx:
images first, then text. Each pass is a pure bytes -> bytes transform, so
the text pass never sees an unfinished image substitution.

Template conventions:
    - Text tokens: ``[Replace_Address]`` anywhere in body, tables,
      headers and footers, even when Word split them across runs.
    - Image tokens: ``{%Image_Front}`` (or ``{{Image_Front}}``).
    - Table-row loops: a row containing ``[#comparableSales]`` opens a
      block that ends at the row containing ``[/comparableSales]``; the
      block is repeated once per row of data.
"""

import copy
import io
import logging
from collections.abc import Sequence

from docx import Document

from report_engine.interfaces.errors import ImageDecodeError, RenderError
from report_engine.interfaces.template import (
    BaseTemplateRenderer,
    ImagePayload,
    ImagePhaseResult,
    RenderResult,
    TextMap,
)
from report_engine.strategies.template_engine.archive import (
    check_archive,
    decode_container,
    normalize_archive,
)
from report_engine.strategies.template_engine.images import PreparedImage, prepare_image
from report_engine.strategies.template_engine.paragraphs import (
    LOOP_MARKER,
    TEXT_TOKEN,
    insert_picture_at,
    iter_paragraphs,
    iter_tables,
    paragraph_text,
    row_paragraphs,
    substitute_tokens,
)

logger = logging.getLogger(__name__)

DEFAULT_DELIMITERS = (("{%", "}"), ("{{", "}}"))


class DocxTemplateRenderer(BaseTemplateRenderer):
    """Renders .docx templates with python-docx.

    Args:
        fallback_size: (width, height) in pixels for images whose size is
            neither configured nor readable from the image header.
        image_delimiters: Image token delimiter styles, tried in order until
            one substitutes at least one image.

    Example:
        ```python
        renderer = DocxTemplateRenderer()
        result = renderer.render(template_bytes, text_map, images)
        Path("report.docx").write_bytes(result.document_bytes)
        ```
    """

    def __init__(
        self,
        fallback_size: tuple[int, int] = (300, 200),
        image_delimiters: Sequence[tuple[str, str]] = DEFAULT_DELIMITERS,
    ) -> None:
        if not image_delimiters:
            raise ValueError("At least one image delimiter style is required")
        self._fallback_size = fallback_size
        self._delimiters = list(image_delimiters)

    @property
    def supported_extensions(self) -> set[str]:
        return {".docx"}

    def render(
        self,
        container: bytes | str,
        text_map: TextMap,
        images: dict[str, ImagePayload],
    ) -> RenderResult:
        try:
            document = decode_container(container)
            check_archive(document)
        except (TypeError, ValueError) as e:
            raise RenderError("image", f"Template container could not be decoded: {e}") from e

        image_phase = self.render_images(document, images)

        try:
            rendered = self.render_text(image_phase.document_bytes, text_map)
        except RenderError as e:
            e.images_replaced_count = image_phase.images_replaced_count
            raise

        replacements = text_map.filled_count + image_phase.images_replaced_count
        logger.info(
            f"Rendered document: {replacements} replacements, "
            f"{image_phase.images_replaced_count} images, "
            f"{len(image_phase.errors)} image errors"
        )
        return RenderResult(
            document_bytes=rendered,
            replacements_count=replacements,
            images_replaced_count=image_phase.images_replaced_count,
            image_errors=image_phase.errors,
        )

    # ------------------------------------------------------------------
    # Image pass
    # ------------------------------------------------------------------

    def render_images(
        self, document: bytes, images: dict[str, ImagePayload]
    ) -> ImagePhaseResult:
        """Substitute image tokens; undecodable images fail only their slot.

        When a delimiter style substitutes nothing, the next style is tried
        against the original bytes. If none matches, the input is returned
        unchanged with a zero count.
        """
        if not images:
            return ImagePhaseResult(document_bytes=document, images_replaced_count=0)

        prepared: dict[str, PreparedImage] = {}
        errors: list[ImageDecodeError] = []
        for name, payload in images.items():
            try:
                prepared[name] = prepare_image(name, payload, self._fallback_size)
            except ImageDecodeError as e:
                logger.warning(f"Skipping image {name}: {e.message}")
                errors.append(e)

        if not prepared:
            return ImagePhaseResult(document_bytes=document, images_replaced_count=0, errors=errors)

        for start, end in self._delimiters:
            rendered, replaced = self._substitute_images(document, prepared, start, end)
            if replaced:
                logger.info(f"Substituted {len(replaced)} image slots using {start}...{end} tokens")
                return ImagePhaseResult(
                    document_bytes=rendered,
                    images_replaced_count=len(replaced),
                    errors=errors,
                )
            logger.info(f"No {start}...{end} image tokens found")

        logger.warning(f"None of {len(prepared)} images matched a token in the template")
        return ImagePhaseResult(document_bytes=document, images_replaced_count=0, errors=errors)

    def _substitute_images(
        self,
        document: bytes,
        prepared: dict[str, PreparedImage],
        start: str,
        end: str,
    ) -> tuple[bytes, list[str]]:
        doc = self._open(document, "image")
        paragraphs = list(iter_paragraphs(doc, notes=False))
        replaced: list[str] = []

        for name, image in prepared.items():
            token = f"{start}{name}{end}"

            def add_picture(run, image=image):
                run.add_picture(io.BytesIO(image.data), width=image.width_emu, height=image.height_emu)

            try:
                hits = sum(insert_picture_at(paragraph, token, add_picture) for paragraph in paragraphs)
            except Exception as e:
                raise RenderError("image", f"Document engine failed: {e}", placeholder=name) from e
            if hits:
                logger.debug(f"Placed image {name} at {hits} location(s)")
                replaced.append(name)

        if not replaced:
            return document, replaced
        return self._save(doc, "image"), replaced

    # ------------------------------------------------------------------
    # Text pass
    # ------------------------------------------------------------------

    def render_text(self, document: bytes, text_map: TextMap) -> bytes:
        """Expand table-row loops, then replace every ``[token]``.

        All tokens are checked before anything is substituted, so a
        template with unknown tokens is rejected as a whole.
        """
        doc = self._open(document, "text")
        try:
            self._expand_loops(doc, text_map)
            paragraphs = list(iter_paragraphs(doc))
            self._check_tokens(paragraphs, text_map.values)

            replaced = 0
            for paragraph in paragraphs:
                replaced += substitute_tokens(
                    paragraph, TEXT_TOKEN, lambda m: text_map.values[m.group(1)]
                )
        except RenderError:
            raise
        except Exception as e:
            raise RenderError("text", f"Document engine failed: {e}") from e

        logger.info(f"Replaced {replaced} text token occurrences")
        return self._save(doc, "text")

    def _check_tokens(self, paragraphs, values: dict[str, str]) -> None:
        unknown: list[str] = []
        for paragraph in paragraphs:
            text = paragraph_text(paragraph)
            marker = LOOP_MARKER.search(text)
            if marker:
                raise RenderError(
                    "text",
                    f"Loop marker {marker.group(0)} must open and close in table rows",
                    placeholder=marker.group(0)[1:-1],
                )
            for name in TEXT_TOKEN.findall(text):
                if name not in values and name not in unknown:
                    unknown.append(name)

        if unknown:
            tokens = ", ".join(f"[{name}]" for name in unknown)
            raise RenderError(
                "text",
                f"Template placeholders have no field in the schema: {tokens}",
                placeholder=unknown[0],
            )

    def _expand_loops(self, doc, text_map: TextMap) -> None:
        for table in list(iter_tables(doc)):
            self._expand_table(table, text_map)

    def _expand_table(self, table, text_map: TextMap) -> None:
        tbl = table._tbl
        rows = list(tbl.tr_lst)
        idx = 0
        while idx < len(rows):
            name = _loop_opened_in(rows[idx], table)
            if name is None:
                idx += 1
                continue

            closing = f"[/{name}]"
            close_idx = next(
                (j for j in range(idx, len(rows)) if closing in _row_text(rows[j], table)),
                None,
            )
            if close_idx is None:
                raise RenderError("text", f"Loop [#{name}] has no closing {closing} row", placeholder=f"#{name}")
            if name not in text_map.loops:
                raise RenderError(
                    "text", f"Loop [#{name}] matches no repeated section", placeholder=f"#{name}"
                )

            block = rows[idx : close_idx + 1]
            items = text_map.loops[name]
            anchor = block[-1]
            for item in items:
                for tr in block:
                    clone = copy.deepcopy(tr)
                    anchor.addnext(clone)
                    anchor = clone
                    _fill_row(clone, table, name, item, text_map.values)
            for tr in block:
                tbl.remove(tr)

            logger.debug(f"Expanded loop {name}: {len(items)} rows x {len(block)} template rows")
            rows = list(tbl.tr_lst)
            idx += len(items) * len(block)

    # ------------------------------------------------------------------
    # Container I/O
    # ------------------------------------------------------------------

    def _open(self, document: bytes, stage: str):
        try:
            check_archive(document)
            return Document(io.BytesIO(document))
        except Exception as e:
            raise RenderError(stage, f"Template could not be opened: {e}") from e

    def _save(self, doc, stage: str) -> bytes:
        buf = io.BytesIO()
        try:
            doc.save(buf)
            data = normalize_archive(buf.getvalue())
            check_archive(data)
        except Exception as e:
            raise RenderError(stage, f"Rendered document failed validation: {e}") from e
        return data


def _row_text(tr, table) -> str:
    return "".join(paragraph_text(p) for p in row_paragraphs(tr, table))


def _loop_opened_in(tr, table) -> str | None:
    for marker in LOOP_MARKER.finditer(_row_text(tr, table)):
        if marker.group(1) == "#":
            return marker.group(2)
    return None


def _fill_row(tr, table, loop: str, item: dict[str, str], values: dict[str, str]) -> None:
    """Drop this loop's markers and fill item fields; other tokens fall back to globals."""

    def resolve(match):
        name = match.group(1)
        if name in item:
            return item[name]
        return values.get(name)

    for paragraph in row_paragraphs(tr, table):
        substitute_tokens(paragraph, LOOP_MARKER, lambda m: "" if m.group(2) == loop else None)
        substitute_tokens(paragraph, TEXT_TOKEN, resolve)
