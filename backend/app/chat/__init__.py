"""Realtime chat: presence registry, broadcast relay and WebSocket endpoint."""
