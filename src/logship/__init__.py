"""
logship - terminal log formatting with CloudWatch Logs shipping

A logging sink that prints aligned, coloured lines locally and ships each
one to an append-only remote log stream in the background.
"""

__version__ = "0.1.0"

from .bootstrap import LogBridge, build_bridge, configure_logging

__all__ = ["LogBridge", "build_bridge", "configure_logging"]
