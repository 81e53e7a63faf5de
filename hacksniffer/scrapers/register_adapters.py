"""Register all source adapters with a factory."""

from typing import Optional

import structlog

from hacksniffer.scrapers.adapters import DevpostAdapter, EventbriteAdapter, MLHAdapter
from hacksniffer.scrapers.base import SourceId
from hacksniffer.scrapers.factory import AdapterFactory

logger = structlog.get_logger(__name__)


def register_all_adapters(factory: Optional[AdapterFactory] = None) -> AdapterFactory:
    """Register every available adapter.

    Registration order is run order: Devpost, then MLH, then Eventbrite.

    Args:
        factory: Factory to register into; a new one is created if omitted

    Returns:
        The populated factory
    """
    factory = factory or AdapterFactory()

    adapters = [
        (SourceId.DEVPOST, DevpostAdapter),
        (SourceId.MLH, MLHAdapter),
        (SourceId.EVENTBRITE, EventbriteAdapter),
    ]

    for source_id, adapter_class in adapters:
        factory.register_adapter(source_id, adapter_class)

    logger.info(
        "all_adapters_registered",
        count=len(factory.get_registered_sources()),
        sources=[source.value for source in factory.get_registered_sources()],
    )
    return factory
