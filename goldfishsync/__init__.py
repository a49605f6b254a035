"""goldfishsync - sync Goldfish Notes into a folder of markdown files."""

from goldfishsync.version import get_version

__version__ = get_version()
