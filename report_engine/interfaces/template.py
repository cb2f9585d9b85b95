"""Template rendering interfaces.

Defines the value objects passed between the placeholder mapper and the
renderer, and the abstract base class for rendering strategies.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from report_engine.interfaces.errors import ImageDecodeError


@dataclass(frozen=True)
class ImagePayload:
    """One image ready for substitution.

    Attributes:
        data: Raw image bytes (possibly undecodable; checked at render time).
        width: Configured width in pixels, or None to measure the image.
        height: Configured height in pixels, or None to measure the image.
    """

    data: bytes
    width: int | None = None
    height: int | None = None


@dataclass(frozen=True)
class TextMap:
    """Flat text substitution table produced from merged data.

    Attributes:
        values: Bare template token name -> normalized string value.
        loops: Repeated-section name -> rows of field -> normalized string.
        filled_count: Number of non-empty leaves (plus non-empty repeated
            sections); the text share of the replacement count.
    """

    values: dict[str, str] = field(default_factory=dict)
    loops: dict[str, list[dict[str, str]]] = field(default_factory=dict)
    filled_count: int = 0


@dataclass(frozen=True)
class ImagePhaseResult:
    """Outcome of the image substitution pass."""

    document_bytes: bytes
    images_replaced_count: int
    errors: list[ImageDecodeError] = field(default_factory=list)


@dataclass(frozen=True)
class RenderResult:
    """Final rendered document and its counters.

    Attributes:
        document_bytes: The rendered container.
        replacements_count: Non-empty text fields plus substituted images.
        images_replaced_count: Image slots actually substituted.
        image_errors: Per-slot decode failures (non-fatal).
    """

    document_bytes: bytes
    replacements_count: int
    images_replaced_count: int
    image_errors: list[ImageDecodeError] = field(default_factory=list)


class BaseTemplateRenderer(ABC):
    """Abstract base class for template rendering strategies.

    Rendering is two strictly sequential pure passes over the container
    bytes: images first, then text.
    """

    @abstractmethod
    def render_images(
        self, document: bytes, images: dict[str, ImagePayload]
    ) -> ImagePhaseResult:
        """Substitute image tokens.

        Raises:
            RenderError: If the container cannot be processed at all.
        """

    @abstractmethod
    def render_text(self, document: bytes, text_map: TextMap) -> bytes:
        """Substitute text tokens and repeated sections.

        Raises:
            RenderError: On unknown tokens or document engine failures.
        """

    @abstractmethod
    def render(
        self,
        container: bytes | str,
        text_map: TextMap,
        images: dict[str, ImagePayload],
    ) -> RenderResult:
        """Run the image pass and then the text pass.

        Args:
            container: Template as raw bytes or a base64 data URI.
            text_map: Text substitution table.
            images: Image token name -> payload.

        Returns:
            RenderResult with the document and both counters.

        Raises:
            RenderError: If either phase fails.
        """

    @property
    @abstractmethod
    def supported_extensions(self) -> set[str]:
        """Return supported file extensions."""
