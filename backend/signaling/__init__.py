"""Signaling relay for peer-to-peer connection establishment."""

__version__ = "0.1.0"
