"""
Providers — check/apply implementations per resource kind.

    from dek.providers import ProviderRegistry

    registry = ProviderRegistry.default()
    provider = registry.require("package.apt")
"""

from dek.providers.base import Provider
from dek.providers.registry import ProviderRegistry

__all__ = ["Provider", "ProviderRegistry"]
