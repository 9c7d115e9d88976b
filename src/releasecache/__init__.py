"""Incremental local mirror of paginated GitHub release and tag feeds."""

__version__ = "0.1.0"
