"""SPK desktop agent: supervises a local IPFS node and answers storage challenges."""

__version__ = "0.1.0"

__all__ = ["__version__"]
