from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

HeadingStyle = Literal["underline", "linebreak", "hashify"]


class ConversionOptions(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    wordwrap: Optional[int] = 80
    preserve_newlines: bool = Field(default=True, alias="preserveNewlines")
    tables: bool = True
    uppercase_headings: bool = Field(default=False, alias="uppercaseHeadings")
    preserve_href_links: bool = Field(default=True, alias="preserveHrefLinks")
    bullet_indent: int = Field(default=2, ge=0, alias="bulletIndent")
    list_indent: int = Field(default=2, ge=0, alias="listIndent")
    heading_style: HeadingStyle = Field(default="linebreak", alias="headingStyle")
    # Accepted for compatibility; wrapping is driven by ``wordwrap``.
    max_line_length: int = Field(default=100, alias="maxLineLength")

    @field_validator("wordwrap", mode="before")
    @classmethod
    def _wordwrap_disabled(cls, value: Any) -> Any:
        if value is None or value is False:
            return None
        if value is True:
            return 80
        if isinstance(value, (int, float)) and value <= 0:
            return None
        return value


DEFAULT_OPTIONS = ConversionOptions()

_FIELD_BY_KEY: dict[str, str] = {}
for _name, _field in ConversionOptions.model_fields.items():
    _FIELD_BY_KEY[_name] = _name
    if _field.alias:
        _FIELD_BY_KEY[_field.alias] = _name


def _normalize_keys(overrides: Mapping[Any, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key, value in overrides.items():
        name = _FIELD_BY_KEY.get(str(key))
        if name is not None:
            normalized[name] = value
    return normalized


def resolve_options(
    options: ConversionOptions | Mapping[str, Any] | None = None,
    base: ConversionOptions = DEFAULT_OPTIONS,
) -> ConversionOptions:
    # Invalid or unknown overrides fall back to ``base`` field by field; never raises.
    if options is None:
        return base
    if isinstance(options, ConversionOptions):
        return options
    if not isinstance(options, Mapping):
        logger.warning(
            "Ignoring conversion options of unexpected type",
            extra={"event": "conversion_options_ignored", "options_type": type(options).__name__},
        )
        return base

    overrides = _normalize_keys(options)
    while overrides:
        merged = {**base.model_dump(), **overrides}
        try:
            return ConversionOptions.model_validate(merged)
        except ValidationError as exc:
            rejected = {_FIELD_BY_KEY.get(str(error["loc"][0])) for error in exc.errors() if error["loc"]}
            rejected &= set(overrides)
            logger.warning(
                "Falling back to defaults for invalid conversion options",
                extra={"event": "conversion_options_invalid", "fields": sorted(rejected)},
            )
            if not rejected:
                break
            for name in rejected:
                overrides.pop(name, None)
    return base
