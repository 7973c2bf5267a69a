"""
Offline Action Queue

Holds mutations from clients that lost connectivity and replays them
against the authoritative handlers once they are back online.
"""

__version__ = "1.0.0"
