"""GovGuide — retrieval-augmented assistant for Indian government schemes."""

__version__ = "1.0.0"
