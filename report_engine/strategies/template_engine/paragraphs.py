"""Run-aware text helpers for python-docx paragraphs.

Word splits visible text into runs at arbitrary points (spell check,
revision marks), so a placeholder like ``[Replace_Address]`` can span
several runs. These helpers search the joined run text and rewrite only
the runs a match touches, keeping each run's formatting.

Paragraphs are found at the XML level in every story part (body,
headers, footers, footnotes and endnotes), so text inside content
controls, text boxes and nested tables is reached too. A paragraph's runs
include those wrapped in hyperlinks, content controls and tracked
insertions.
"""

import copy
import re
from collections.abc import Callable, Iterator

from docx.opc.constants import CONTENT_TYPE as CT
from docx.opc.part import PartFactory, XmlPart
from docx.oxml.ns import qn
from docx.parts.document import DocumentPart
from docx.parts.hdrftr import FooterPart, HeaderPart
from docx.table import Table
from docx.text.paragraph import Paragraph
from docx.text.run import Run

TEXT_TOKEN = re.compile(r"\[([A-Za-z_][\w.\-]*)\]")
LOOP_MARKER = re.compile(r"\[([#/])([A-Za-z_][\w.\-]*)\]")

NOTE_CONTENT_TYPES = (CT.WML_FOOTNOTES, CT.WML_ENDNOTES)

# Load note stories as XML parts so their text can be rewritten in place
for _content_type in NOTE_CONTENT_TYPES:
    PartFactory.part_type_for.setdefault(_content_type, XmlPart)


def paragraph_runs(paragraph: Paragraph) -> list[Run]:
    """Every run of the paragraph, in document order, excluding nested paragraphs."""
    p = paragraph._p
    return [Run(r, paragraph) for r in p.iter(qn("w:r")) if _owning_paragraph(r) is p]


def paragraph_text(paragraph: Paragraph) -> str:
    return "".join(run.text for run in paragraph_runs(paragraph))


def iter_story_parts(document, notes: bool = True) -> Iterator[XmlPart]:
    """Yield the document, header and footer parts, then note parts if asked."""
    for part in document.part.package.iter_parts():
        if isinstance(part, (DocumentPart, HeaderPart, FooterPart)):
            yield part
        elif notes and isinstance(part, XmlPart) and part.content_type in NOTE_CONTENT_TYPES:
            yield part


def iter_paragraphs(document, notes: bool = True) -> Iterator[Paragraph]:
    """Yield every paragraph of every story part once.

    Args:
        document: An open python-docx Document.
        notes: Include footnotes and endnotes. Pictures cannot be placed
            there, so the image pass leaves them out.
    """
    for part in iter_story_parts(document, notes):
        for p in part.element.iter(qn("w:p")):
            yield Paragraph(p, part)


def iter_tables(document) -> Iterator[Table]:
    """Yield every table, nested ones included, in every story part."""
    for part in iter_story_parts(document):
        for tbl in part.element.iter(qn("w:tbl")):
            yield Table(tbl, part)


def row_paragraphs(tr, parent) -> list[Paragraph]:
    return [Paragraph(p, parent) for p in tr.iter(qn("w:p"))]


def _owning_paragraph(element):
    node = element.getparent()
    while node is not None and node.tag != qn("w:p"):
        node = node.getparent()
    return node

def _locate(texts: list[str], offset: int) -> tuple[int, int]:
    """Map an offset in the joined text to (run index, offset in run)."""
    for idx, text in enumerate(texts):
        if offset < len(text):
            return idx, offset
        offset -= len(text)
    raise IndexError("offset beyond paragraph text")


def _replace_span(runs: list[Run], texts: list[str], start: int, end: int, replacement: str) -> tuple[int, int]:
    """Replace joined-text span [start, end) and return where it now starts."""
    first, first_off = _locate(texts, start)
    last, last_off = _locate(texts, end - 1)
    last_off += 1

    if first == last:
        runs[first].text = texts[first][:first_off] + replacement + texts[first][last_off:]
    else:
        runs[first].text = texts[first][:first_off] + replacement
        for idx in range(first + 1, last):
            if texts[idx]:
                runs[idx].text = ""
        runs[last].text = texts[last][last_off:]
    return first, first_off


def substitute_tokens(
    paragraph: Paragraph,
    pattern: re.Pattern,
    resolve: Callable[[re.Match], str | None],
) -> int:
    """Replace pattern matches left to right in a single pass.

    Replacement text is never re-scanned. Newlines in it become line
    breaks inside the run.

    Args:
        paragraph: Paragraph to rewrite in place.
        pattern: Token pattern searched over the joined run text.
        resolve: Returns the replacement for a match, or None to keep it.

    Returns:
        The number of matches replaced.
    """
    count = 0
    pos = 0
    while True:
        runs = paragraph_runs(paragraph)
        texts = [run.text for run in runs]
        match = pattern.search("".join(texts), pos)
        if match is None:
            return count

        replacement = resolve(match)
        if replacement is None:
            pos = match.end()
            continue
        _replace_span(runs, texts, match.start(), match.end(), replacement)
        pos = match.start() + len(replacement)
        count += 1


def insert_picture_at(paragraph: Paragraph, token: str, add_picture) -> int:
    """Replace every occurrence of token with a picture run.

    Args:
        paragraph: Paragraph to search.
        token: Delimited image token, e.g. "{%Image_Front}".
        add_picture: Callable receiving the new, empty Run to draw into.

    Returns:
        The number of occurrences replaced.
    """
    count = 0
    pos = 0
    while True:
        runs = paragraph_runs(paragraph)
        texts = [run.text for run in runs]
        start = "".join(texts).find(token, pos)
        if start < 0:
            return count

        host_idx, split_at = _replace_span(runs, texts, start, start + len(token), "")
        host = runs[host_idx]
        host_text = host.text

        # host | picture | tail, all sharing the host's formatting
        picture_r = copy.deepcopy(host._r)
        host._r.addnext(picture_r)
        picture_run = Run(picture_r, paragraph)
        picture_run.text = ""

        tail = host_text[split_at:]
        host.text = host_text[:split_at]
        if tail:
            tail_r = copy.deepcopy(host._r)
            picture_r.addnext(tail_r)
            Run(tail_r, paragraph).text = tail

        add_picture(picture_run)
        pos = start
        count += 1
