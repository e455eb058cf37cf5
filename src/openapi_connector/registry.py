"""Registry of models that consume connector methods or act as caches."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Optional, Tuple


logger = logging.getLogger(__name__)


class ModelRegistry:
    def __init__(self) -> None:
        self._models: Dict[str, Any] = {}

    def define(self, name: str, model: Any) -> Any:
        if name in self._models and self._models[name] is not model:
            logger.info("Replacing model definition: %s", name)
        self._models[name] = model
        return model

    def get_model(self, name: str) -> Optional[Any]:
        return self._models.get(name)

    def items(self) -> Iterator[Tuple[str, Any]]:
        return iter(list(self._models.items()))

    def __contains__(self, name: object) -> bool:
        return name in self._models
