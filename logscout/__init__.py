"""logscout: multi-source log follower with include/exclude filtering."""

__version__ = "0.1.0"
