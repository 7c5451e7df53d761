"""
monconn - live session monitor for streaming-server access logs

Tails a Wowza-style access log and keeps an auto-refreshing terminal table
of active client sessions: which IP/client pairs are connected, what video
they are watching and how long each lifecycle phase has lasted.
"""

__version__ = "0.1.0"

from .main import main

__all__ = ["main", "__version__"]
