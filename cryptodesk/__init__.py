"""cryptodesk - domain state aggregator for a crypto trading screen."""

__version__ = "0.3.0"
