"""Desktop provisioning daemon, with accessibility and GDM session services."""

__version__ = "0.1.0"
__all__ = ["__version__"]