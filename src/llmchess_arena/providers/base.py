"""AI provider capability consumed by the move-suggestion service."""
from __future__ import annotations

from typing import Any, Dict, List, Protocol


class AIProvider(Protocol):
    name: str
    models: List[Dict[str, str]]

    async def load_models(self) -> None:
        ...

    def search_models(self, query: str) -> List[Dict[str, str]]:
        ...

    async def complete(self, prompt: str, response_schema: Dict[str, Any], model: str) -> Dict[str, Any]:
        """Return the structured (parsed JSON) reply or raise TransientProviderError."""
        ...
