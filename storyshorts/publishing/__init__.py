"""
Publishing Layer.

Browser automation for the Dzen editor plus the publication history.
"""
from .probes import find_actionable, wait_until, wait_for_selector
from .history import (
    PublicationHistoryStore,
    FilePublicationHistory,
    InMemoryPublicationHistory,
    PublicationRecord,
)
from .dzen_publisher import DzenVideoPublisher, DzenSelectors, BrowserSession

__all__ = [
    "find_actionable",
    "wait_until",
    "wait_for_selector",
    "PublicationHistoryStore",
    "FilePublicationHistory",
    "InMemoryPublicationHistory",
    "PublicationRecord",
    "DzenVideoPublisher",
    "DzenSelectors",
    "BrowserSession",
]
