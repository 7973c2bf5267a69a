"""
HTTP surface of the queue service.
"""

from .deps import QueueServices, build_services
from .routes import router

__all__ = ["QueueServices", "build_services", "router"]
