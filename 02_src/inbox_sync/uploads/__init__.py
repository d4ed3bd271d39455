"""Upload pipeline module."""

from .pipeline import IUploadPipeline, UploadPipeline

__all__ = ["IUploadPipeline", "UploadPipeline"]
