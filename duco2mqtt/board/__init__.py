"""Duco connectivity board REST client and response parser."""

from .client import BoardClient, TrustConfig
from .parser import SnapshotParser, parse_snapshot

__all__ = ["BoardClient", "TrustConfig", "SnapshotParser", "parse_snapshot"]
