"""Storefront back end: catalog, checkout, orders, inventory and cart recovery."""

__version__ = "1.0.0"
