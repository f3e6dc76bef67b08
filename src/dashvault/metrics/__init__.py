"""Pure KPI computations over already-fetched tracker data."""

from .classification import classification_rate, extract_environment, percentage, summarize_bugs

__all__ = [
    "classification_rate",
    "extract_environment",
    "percentage",
    "summarize_bugs",
]
