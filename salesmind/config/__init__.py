"""Configuration package for the SalesMind backend."""

from .settings import settings

__all__ = ["settings"]
