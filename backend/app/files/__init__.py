"""File storage module for the chatroom.

This module handles uploads, date partitioning, directory listing and
retrieval of shared files.

Layout on disk:
- <root>/YYYY/MM/DD/<epoch-ms>-<original name>

The directory tree is the only index; there is no metadata database and no
delete API.
"""
