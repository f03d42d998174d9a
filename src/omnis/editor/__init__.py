"""Editor package containing the document model, session and pagination."""

from . import document_model, pagination, workspace

__all__ = ["document_model", "pagination", "workspace"]
