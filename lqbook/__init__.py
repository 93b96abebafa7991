"""Order interfaces, order book listeners and a market depth feed."""

__version__ = "2.0.0"