"""Configuration package initialization."""

from .environment import Settings, load_settings
from .cors import CORS_CONFIG

__all__ = ['Settings', 'load_settings', 'CORS_CONFIG']
