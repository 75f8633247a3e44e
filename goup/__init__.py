"""Install, list, switch and remove Go toolchain versions under ~/go."""

__version__ = "0.7.0"
__all__ = ["__version__"]