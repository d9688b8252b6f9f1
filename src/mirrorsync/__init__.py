"""mirrorsync: keep a subtree mirror repository in sync with its source tree."""

__version__ = "0.1.0"
