"""DealPulse: research orchestration and deal-intelligence scoring."""

__version__ = "0.1.0"
