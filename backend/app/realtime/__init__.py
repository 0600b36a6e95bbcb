"""Realtime package — WebSocket broadcast of intake and volunteer events."""
