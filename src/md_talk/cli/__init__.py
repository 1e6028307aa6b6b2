"""Command line interface for md-talk."""

from .main import main

__all__ = ['main']
