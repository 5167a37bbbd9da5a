"""Parser and validator settings."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .base import SettingsError

ENV_PREFIX = "DOCSCHEMA_"


class DocSchemaSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    encoding: str = Field(default="utf-8", min_length=1)
    follow_imports: bool = True
    force_strict: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DocSchemaSettings:
        """Build settings from ``DOCSCHEMA_*`` environment variables.

        Unset variables keep their defaults. String values are coerced by
        pydantic, so ``DOCSCHEMA_FORCE_STRICT=true`` and ``=1`` both work.

        Raises:
            SettingsError: If a variable holds a value of the wrong type.
        """
        environ = os.environ if environ is None else environ
        values = {
            name: environ[f"{ENV_PREFIX}{name.upper()}"]
            for name in cls.model_fields
            if f"{ENV_PREFIX}{name.upper()}" in environ
        }
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise SettingsError(f"Invalid docschema settings: {e}") from e
