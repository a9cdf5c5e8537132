"""HTTP clients for captive-portal devices."""

from .portal_client import PortalClient
from .r710_client import R710Client

__all__ = ["PortalClient", "R710Client"]
