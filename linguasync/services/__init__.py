"""Services - event-driven components that do one thing well."""

from linguasync.services.base import Service
from linguasync.services.orchestrator import TranslationJob, TranslationOrchestrator

__all__ = [
    "Service",
    "TranslationJob",
    "TranslationOrchestrator",
]
