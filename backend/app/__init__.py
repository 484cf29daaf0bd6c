"""Chatroom backend: presence relay and date-partitioned file store."""
