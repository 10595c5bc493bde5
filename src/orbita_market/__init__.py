"""
Orbita Marketplace: package distribution core.

Publishes package directories as checksummed archives and installs,
updates and uninstalls them under a local install root.
"""

__version__ = "0.1.0"
