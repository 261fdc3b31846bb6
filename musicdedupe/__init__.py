"""MusicDedupe: keep the best copy of every track in a downloaded library."""

__version__ = "0.3.0"
