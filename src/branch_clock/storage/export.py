"""Serialization of store snapshots for interchange."""

from __future__ import annotations

from typing import Literal

import yaml
from pydantic import ValidationError

from .models import ExportDocument
from .store import StoreCorruptedError, serialize_document

ExportFormat = Literal["json", "yaml"]


def dump_export(document: ExportDocument, fmt: ExportFormat = "json") -> str:
    """Render an export snapshot as JSON or YAML text."""

    if fmt == "json":
        return serialize_document(document)
    if fmt == "yaml":
        return yaml.safe_dump(
            document.model_dump(mode="json"),
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
        )
    raise ValueError("Unsupported export format. Use 'json' or 'yaml'.")


def load_export(text: str) -> ExportDocument:
    """Read an export produced by :func:`dump_export` in either format."""

    try:
        payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise StoreCorruptedError(f"Export document could not be parsed: {exc}") from exc
    try:
        return ExportDocument.model_validate(payload)
    except ValidationError as exc:
        raise StoreCorruptedError(f"Export document failed validation: {exc}") from exc


__all__ = ["ExportFormat", "dump_export", "load_export"]
