"""storefront - delivery addresses, checkout and order placement."""

__version__ = "0.1.0"
