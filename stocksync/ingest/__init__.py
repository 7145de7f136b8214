"""Ingestion helpers."""

from __future__ import annotations

import json
import logging
import pathlib

import yaml
from pydantic import BaseModel, Field, ValidationError

from stocksync.errors import ConfigError
from stocksync.ingest.models import FilterRule

logger = logging.getLogger(__name__)


class _FieldLists(BaseModel):
    brand: list[str] = Field(default_factory=list)
    sku: list[str] = Field(default_factory=list)


class FilterConfig(BaseModel):
    """Shape of ``product-filter.json``."""

    include: _FieldLists = Field(default_factory=_FieldLists)
    exclude: _FieldLists = Field(default_factory=_FieldLists)
    include_products_limit: int = Field(default=0, ge=0)

    def to_rule(self) -> FilterRule:
        return FilterRule(
            include_brand=frozenset(self.include.brand),
            include_sku=frozenset(self.include.sku),
            exclude_brand=frozenset(self.exclude.brand),
            exclude_sku=frozenset(self.exclude.sku),
            limit=self.include_products_limit,
        )


def load_filter_rule(path: str | pathlib.Path) -> FilterRule:
    """Load the filter document (YAML or JSON). A missing file means no filtering."""
    config_path = pathlib.Path(path)
    if not config_path.exists():
        logger.warning("Filter config %s not found; using an empty rule", config_path)
        return FilterRule()
    try:
        text = config_path.read_text(encoding="utf-8")
        data = (json.loads(text) if config_path.suffix == ".json" else yaml.safe_load(text)) or {}
        return FilterConfig.model_validate(data).to_rule()
    except (json.JSONDecodeError, yaml.YAMLError, ValidationError) as exc:
        raise ConfigError(f"Invalid filter config {config_path}: {exc}") from exc
