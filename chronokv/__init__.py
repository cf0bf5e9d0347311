"""
chronokv - versioned key-value store over HTTP.

Every write creates a new timestamped version; reads return the latest
version or the version visible as of any point in time.
"""

__version__ = "1.0.0"
