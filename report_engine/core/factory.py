"""Component Factory for strategy instantiation.

The Factory Pattern allows the report engine to instantiate
different strategy implementations at runtime based on
configuration or environment variables.
"""

import logging

from report_engine.assembly.flow import ReportAssemblyFlow
from report_engine.core.config import Settings, get_settings
from report_engine.interfaces.storage import BaseDocumentStore
from report_engine.interfaces.template import BaseTemplateRenderer
from report_engine.strategies.storage import LocalDocumentStore
from report_engine.strategies.template_engine import DocxTemplateRenderer

logger = logging.getLogger(__name__)


class ComponentFactory:
    """Factory for creating component instances based on configuration.

    Stores and renderers are stateless and cached; flows track the state
    of a single run, so a new one is built on every call.

    Example:
        ```python
        settings = get_settings()
        factory = ComponentFactory(settings)

        store = factory.get_document_store()
        renderer = factory.get_renderer()
        flow = factory.get_flow()
        ```
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the factory with optional settings.

        Args:
            settings: Engine settings. If None, uses global settings.
        """
        self._settings = settings or get_settings()
        self._store_cache: BaseDocumentStore | None = None
        self._renderer_cache: BaseTemplateRenderer | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    def get_document_store(self, storage_type: str | None = None) -> BaseDocumentStore:
        """Get a document store instance based on the specified type.

        Args:
            storage_type: The store type to instantiate. If None, uses settings.

        Returns:
            A BaseDocumentStore implementation instance.

        Raises:
            ValueError: If the store type is unknown.
        """
        if self._store_cache is None or storage_type is not None:
            storage_type = storage_type or self._settings.storage_type

            logger.info(f"Instantiating document store: {storage_type}")

            match storage_type:
                case "local":
                    self._store_cache = LocalDocumentStore(self._settings.storage_root)
                case _:
                    raise ValueError(
                        f"Unknown storage type: {storage_type}. "
                        f"Valid options: 'local'"
                    )

        return self._store_cache

    def get_renderer(self, renderer_type: str | None = None) -> BaseTemplateRenderer:
        """Get a template renderer instance based on the specified type.

        Args:
            renderer_type: The renderer type to instantiate. If None, uses settings.

        Returns:
            A BaseTemplateRenderer implementation instance.

        Raises:
            ValueError: If the renderer type is unknown.
        """
        if self._renderer_cache is None or renderer_type is not None:
            renderer_type = renderer_type or self._settings.renderer_type

            logger.info(f"Instantiating renderer: {renderer_type}")

            match renderer_type:
                case "docx":
                    self._renderer_cache = DocxTemplateRenderer(
                        fallback_size=(
                            self._settings.fallback_image_width,
                            self._settings.fallback_image_height,
                        ),
                        image_delimiters=self._settings.image_delimiters,
                    )
                case _:
                    raise ValueError(
                        f"Unknown renderer type: {renderer_type}. "
                        f"Valid options: 'docx'"
                    )

        return self._renderer_cache

    def get_flow(self) -> ReportAssemblyFlow:
        """Build a fresh assembly flow for one request."""
        return ReportAssemblyFlow(
            store=self.get_document_store(),
            renderer=self.get_renderer(),
            settings=self._settings,
        )
