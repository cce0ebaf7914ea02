"""
Deal intelligence for DealPulse.

Provides notes analysis, deterministic deal scoring and LLM-backed report
generation with a deterministic fallback.
"""

from .generator import IntelligenceGenerator
from .notes_analyzer import analyze_notes
from .scoring import DealScoringEngine
from .taxonomy import StageTaxonomy, get_taxonomy

__all__ = [
    "DealScoringEngine",
    "IntelligenceGenerator",
    "StageTaxonomy",
    "analyze_notes",
    "get_taxonomy",
]
