"""
Package init for chronokv.server
"""

from chronokv.server.server import ChronoServer

__all__ = ['ChronoServer']
