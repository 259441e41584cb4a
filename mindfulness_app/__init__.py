"""Mindfulness companion: web service, persistence layer and Python client."""

__version__ = "0.1.0"
