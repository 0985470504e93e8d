"""
Pipeline Layer.

VideoOrchestrator runs one article end to end; BatchProcessor runs many.
"""
from .orchestrator import VideoOrchestrator
from .batch import BatchProcessor, BatchReport, ArticleOutcome, discover_articles, article_paths

__all__ = [
    "VideoOrchestrator",
    "BatchProcessor",
    "BatchReport",
    "ArticleOutcome",
    "discover_articles",
    "article_paths",
]
