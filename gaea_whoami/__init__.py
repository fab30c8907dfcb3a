"""gaea-whoami: a diagnostic service that reports its own pod identity."""
from gaea_whoami._build import VERSION as __version__

__all__ = ["__version__"]
