"""Subpath-aware reliable transport strategy for named-data wireless multihop networks, run on a discrete-event scheduler."""

__version__ = "0.1.0"