"""Keep a local directory mirror in sync with a subtree of a GitHub repository."""

__version__ = "0.4.0"
