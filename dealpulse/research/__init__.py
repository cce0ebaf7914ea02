"""External research gathering: connectors, coordination and summaries."""

from dealpulse.research.connectors import build_connectors
from dealpulse.research.coordinator import ResearchCoordinator
from dealpulse.research.inflight import InFlightRegistry
from dealpulse.research.summary import NarrativeSummarizer

__all__ = ["InFlightRegistry", "NarrativeSummarizer", "ResearchCoordinator", "build_connectors"]
