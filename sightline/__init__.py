"""Sightline Live - realtime voice and vision bridge to Gemini Live."""

__version__ = "0.1.0"
