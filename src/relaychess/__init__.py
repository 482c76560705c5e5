"""relaychess: chess played over signed, independently broadcast relay events."""

__version__ = "0.1.0"
