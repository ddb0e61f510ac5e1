"""Base model for GitLab API payloads."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound="GitLabModel")


class GitLabModel(BaseModel):
    """Lenient view over a GitLab payload: unknown keys are dropped, absent keys default."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for a request body, leaving out unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def parse_many(cls: type[ModelT], items: Any) -> list[ModelT]:
        """Validate each dict in *items*, skipping anything that does not fit."""
        if not isinstance(items, list):
            return []
        parsed: list[ModelT] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                parsed.append(cls.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping malformed %s: %s", cls.__name__, e.errors()[:1])
        return parsed
