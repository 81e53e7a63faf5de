"""Factory for creating source adapter instances."""

from datetime import datetime
from typing import Callable, Dict, List, Optional, Type

import structlog

from hacksniffer.scrapers.base import BaseAdapter, SourceId


logger = structlog.get_logger(__name__)


class AdapterFactory:
    """Registry of adapter classes keyed by source id.

    The factory holds no shared services of its own: the Fetcher every
    adapter uses is passed in by whoever owns the ingestion run.
    """

    def __init__(self):
        """Initialize an empty adapter registry."""
        # Insertion order is the order adapters run in
        self._adapter_registry: Dict[SourceId, Type[BaseAdapter]] = {}

    def register_adapter(self, source_id: SourceId, adapter_class: Type[BaseAdapter]) -> None:
        """Register an adapter class for a source.

        Args:
            source_id: Source identifier (e.g., SourceId.DEVPOST)
            adapter_class: Adapter class (must inherit from BaseAdapter)
        """
        if not isinstance(adapter_class, type) or not issubclass(adapter_class, BaseAdapter):
            raise ValueError(f"Adapter class must inherit from BaseAdapter: {adapter_class}")

        self._adapter_registry[SourceId(source_id)] = adapter_class
        logger.debug("adapter_registered", source=SourceId(source_id).value, adapter_class=adapter_class.__name__)

    def create_adapter(
        self,
        source_id: SourceId,
        fetcher,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> Optional[BaseAdapter]:
        """Create an adapter instance bound to the given fetcher.

        Args:
            source_id: Source identifier
            fetcher: Shared Fetcher instance
            clock: Optional time source passed to the adapter

        Returns:
            Adapter instance, or None if no adapter is registered
        """
        adapter_class = None
        if self.has_adapter(source_id):
            adapter_class = self._adapter_registry[SourceId(source_id)]
        if not adapter_class:
            logger.warning("adapter_not_found", source=str(source_id))
            return None

        adapter = adapter_class(fetcher, clock=clock)
        logger.debug("adapter_created", source=adapter.source_id.value)
        return adapter

    def create_all(self, fetcher, clock: Optional[Callable[[], datetime]] = None) -> List[BaseAdapter]:
        """Create one adapter per registered source, in registration order."""
        return [self.create_adapter(source_id, fetcher, clock) for source_id in self._adapter_registry]

    def get_registered_sources(self) -> List[SourceId]:
        """Get list of registered source ids."""
        return list(self._adapter_registry.keys())

    def has_adapter(self, source_id: SourceId) -> bool:
        """Check if an adapter is registered for a source."""
        try:
            return SourceId(source_id) in self._adapter_registry
        except ValueError:
            return False
