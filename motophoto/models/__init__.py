"""Models package initialization."""

from .event import Event

__all__ = ['Event']
