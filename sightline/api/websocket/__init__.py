"""WebSocket handlers for the live channel.

This module provides the /ws/live endpoint:
- live_stream_endpoint: Main WebSocket handler
- channel_registry: Global channel registry
"""

from sightline.api.websocket.live_stream import (
    ChannelEntry,
    ChannelOutbox,
    ChannelRegistry,
    channel_registry,
    get_live_provider,
    live_stream_endpoint,
)

__all__ = [
    "live_stream_endpoint",
    "channel_registry",
    "get_live_provider",
    "ChannelRegistry",
    "ChannelEntry",
    "ChannelOutbox",
]
