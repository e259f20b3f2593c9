"""Relay core: connection registry, rooms, signal forwarding and pairing codes."""
