"""Identity provider integration."""

from .client import IdentityProviderClient

__all__ = ["IdentityProviderClient"]
