"""stockscan: tiered, cached, quota-gated analysis of scanned delivery documents."""

from stockscan.version import __version__

__all__ = ["__version__"]
