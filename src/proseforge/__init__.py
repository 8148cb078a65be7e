"""proseforge: layered-memory prose generation and validation for serialized novels."""

__version__ = "0.1.0"
