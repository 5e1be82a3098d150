"""
Package init for speedwatch.server
"""

from speedwatch.server.server import SpeedWatchServer
from speedwatch.server.auth import AdminAuth

__all__ = ['SpeedWatchServer', 'AdminAuth']
