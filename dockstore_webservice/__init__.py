"""
Dockstore webservice

Registry of tools and workflows kept in step with their source-control
repositories.
"""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("dockstore-webservice")
except importlib.metadata.PackageNotFoundError:
    # Running from a source checkout that was never installed
    __version__ = "0.0.0"

__all__ = ["__version__"]
