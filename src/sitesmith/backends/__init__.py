"""Clients for the chat, image and video generation functions."""

from .base import GenerationBackend
from .chat import ChatBackend
from .image import ImageBackend
from .video import VideoBackend

__all__ = ["GenerationBackend", "ChatBackend", "ImageBackend", "VideoBackend"]
