"""Frizy core: context scoring/compaction and AI work-session tracking."""

__version__ = "0.1.0"
