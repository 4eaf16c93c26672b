from __future__ import annotations

from .base import AIProvider
from .openrouter_provider import OpenRouterProvider

__all__ = ["AIProvider", "OpenRouterProvider"]
