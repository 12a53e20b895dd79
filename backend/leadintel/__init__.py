"""Lead intelligence pipeline: aggregation, intent scoring, follow-ups and competitor monitoring."""

__version__ = "1.0.0"
