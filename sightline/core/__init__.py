"""Core bridge components.

This module provides the server-side orchestration for live channels:
- LiveSessionBridge: Maps wire messages onto one upstream Live session
- SendResult: Success/failure outcome of a translated client message
"""

from sightline.core.bridge import LiveSessionBridge, SendResult

__all__ = [
    "LiveSessionBridge",
    "SendResult",
]
