"""Motophoto API service: photo catalog for sporting events."""

__version__ = "0.1.0"
