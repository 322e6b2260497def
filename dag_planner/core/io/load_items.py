from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from dag_planner.core.errors import ItemLoadError

logger = logging.getLogger(__name__)


def load_items(path: str) -> dict[str, Any]:
    """Load a YAML/JSON work-item document.

    Returns a dict with keys: schema_version, items, optional resolution_map.
    Does not coerce types; validate_items owns shape checking.
    """

    p = Path(path)
    if not p.exists():
        raise ItemLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    data = _read_document(p)

    if not isinstance(data, dict):
        raise ItemLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )

    normalized: dict[str, Any] = {
        "schema_version": data.get("schema_version"),
        "items": data.get("items"),
    }
    if "resolution_map" in data:
        normalized["resolution_map"] = data.get("resolution_map")

    normalized["__file__"] = str(p)
    logger.debug("loaded %s", p)
    return normalized


def load_document(path: str) -> dict[str, Any]:
    """Load any YAML/JSON mapping (used for saved plans and graphs)."""
    p = Path(path)
    if not p.exists():
        raise ItemLoadError(code="E_FILE_NOT_FOUND", message="file does not exist", file=str(p))
    data = _read_document(p)
    if not isinstance(data, dict):
        raise ItemLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )
    return data


def _read_document(p: Path) -> Any:
    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise ItemLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            return yaml.safe_load(raw_text)
        if suffix == ".json":
            return json.loads(raw_text)
        raise ItemLoadError(
            code="E_UNSUPPORTED_FORMAT",
            message="supported formats are .yaml/.yml and .json",
            file=str(p),
        )
    except ItemLoadError:
        raise
    except Exception as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise ItemLoadError(code=code, message=str(e), file=str(p)) from e
