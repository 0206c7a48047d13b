"""Brand-operations dashboard API with a fingerprint-aware LLM insight cache."""

__version__ = "1.0.0"
