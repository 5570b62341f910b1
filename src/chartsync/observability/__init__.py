"""
chartsync Observability Module
"""

from chartsync.observability.logging import configure_logging, resource_redaction_processor

__all__ = [
    "configure_logging",
    "resource_redaction_processor",
]
