"""Omnis document workspace: session, pagination, PDF rendering and offline analytics."""

__version__ = "0.1.0"
