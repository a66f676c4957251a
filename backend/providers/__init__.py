from .registry import build_providers, ProviderSet

__all__ = [
    "build_providers",
    "ProviderSet",
]
