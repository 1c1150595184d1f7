"""Lernbuddy: backend of a chat-based learning companion for school students."""

__version__ = "0.1.0"
