"""Python client for the Live channel.

Device-backed modules (audio_output, microphone, camera) are imported on
demand so the rest of the client works without PortAudio or a camera.
"""

from sightline.client.auto_observe import (
    AUTO_VISION_PROMPT,
    MANUAL_VISION_PROMPT,
    ActivityClock,
    AutoObserver,
    FeedbackMode,
)
from sightline.client.connection import ConnectionState, LiveConnection
from sightline.client.exceptions import CaptureError, ClientError, PlaybackDecodeError
from sightline.client.playback import AudioOutput, AudioPlaybackScheduler, DecodedAudio
from sightline.client.scene_gate import EncodedFrame, FrameSampler, SceneChangeGate
from sightline.client.session import LiveAgentClient
from sightline.client.transcript import TranscriptAggregator, TranscriptEntry, TranscriptRole

__all__ = [
    # Controller
    "LiveAgentClient",
    "LiveConnection",
    "ConnectionState",
    # Media pipeline
    "AudioOutput",
    "AudioPlaybackScheduler",
    "DecodedAudio",
    "EncodedFrame",
    "FrameSampler",
    "SceneChangeGate",
    # Auto-observe
    "ActivityClock",
    "AutoObserver",
    "FeedbackMode",
    "AUTO_VISION_PROMPT",
    "MANUAL_VISION_PROMPT",
    # Transcript
    "TranscriptAggregator",
    "TranscriptEntry",
    "TranscriptRole",
    # Exceptions
    "ClientError",
    "CaptureError",
    "PlaybackDecodeError",
]
