"""Payload models for product create/update requests.

Multipart forms deliver every field as a string, so ``specs`` may arrive as a
JSON-encoded list. The models decode it here so storage only ever sees the
parsed value.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _decode_specs(value: Any) -> Any:
    if isinstance(value, (str, bytes)):
        text = value.decode("utf-8") if isinstance(value, bytes) else value
        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"specs must be a JSON list: {exc.msg}") from exc
    return value


class ProductCreateModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(..., min_length=1)
    tag: str = ""
    description: str = ""
    detail_description: str = Field("", alias="detailDescription")
    specs: list[Any] = Field(default_factory=list)
    existing_image: Optional[str] = Field(None, alias="existingImage")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("specs", mode="before")
    @classmethod
    def decode_specs(cls, value):
        decoded = _decode_specs(value)
        return [] if decoded is None else decoded


class ProductUpdateModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: Optional[str] = Field(None, min_length=1)
    tag: Optional[str] = None
    description: Optional[str] = None
    detail_description: Optional[str] = Field(None, alias="detailDescription")
    specs: Optional[list[Any]] = None
    existing_image: Optional[str] = Field(None, alias="existingImage")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("specs", mode="before")
    @classmethod
    def decode_specs(cls, value):
        return _decode_specs(value)

    def changes(self) -> dict[str, Any]:
        """Return only the explicitly supplied fields, keyed by stored name."""

        supplied = self.model_dump(by_alias=True, exclude_unset=True)
        # An empty specs string means "leave specs alone".
        if supplied.get("specs") is None:
            supplied.pop("specs", None)
        for key in ("name", "tag", "description", "detailDescription"):
            if key in supplied and supplied[key] is None:
                supplied.pop(key)
        return supplied
