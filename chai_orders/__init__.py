"""Order management backend for the chai storefront."""

__version__ = "0.1.0"
