"""Sitesmith: build websites by chatting with an AI."""

__version__ = "0.1.0"
