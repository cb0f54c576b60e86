"""
Strict Parse Attempt - decode a normalized region and coerce it to a bundle
"""

import json
from typing import Any, Dict

from bundle_repair.core.config import settings
from bundle_repair.core.exceptions import DocumentDecodeError, InvalidBundleShapeError
from bundle_repair.core.logging_config import logger
from bundle_repair.schemas.bundle import file_name_aliases
from bundle_repair.services.bundle_extraction.models import METADATA_FIELDS, RawBundle


# Keys that identify the flat {"html": ..., "css": ..., "js": ...} shape
FLAT_SHAPE_KEYS = ("html", "css", "js")


def decode_document(repaired: str) -> Dict[str, Any]:
    """
    Decode with the strict JSON decoder.

    Raises:
        DocumentDecodeError: text is not valid JSON
        InvalidBundleShapeError: decoded value is not an object
    """
    try:
        decoded = json.loads(repaired)
    except json.JSONDecodeError as e:
        raise DocumentDecodeError(e.msg, position=e.pos) from e
    except RecursionError as e:
        raise DocumentDecodeError("nesting too deep") from e

    if not isinstance(decoded, dict):
        raise InvalidBundleShapeError(f"top-level value is {type(decoded).__name__}, not an object")
    return decoded


def _file_entries(decoded: Dict[str, Any]) -> Dict[str, Any]:
    files = decoded.get("files")
    if isinstance(files, dict):
        return files
    if files is not None:
        raise InvalidBundleShapeError(f"'files' is {type(files).__name__}, not an object")
    if any(key in decoded for key in FLAT_SHAPE_KEYS):
        return {key: decoded[key] for key in FLAT_SHAPE_KEYS if key in decoded}
    raise InvalidBundleShapeError("no 'files' object and no html/css/js fields")


def coerce_bundle(decoded: Dict[str, Any]) -> RawBundle:
    """
    Turn a decoded mapping into a RawBundle.

    Unknown names and non-string values are dropped with a warning. The first
    entry for a kind wins, with canonical names taking precedence over aliases.
    """
    entries = _file_entries(decoded)
    aliases = file_name_aliases()
    bundle = RawBundle()

    precedence = {name: i for i, name in enumerate(aliases)}
    ordered = sorted(entries.items(), key=lambda item: precedence.get(item[0], len(precedence)))
    for name, value in ordered:
        kind = aliases.get(name)
        if kind is None:
            bundle.warnings.append(f"Ignored unexpected file '{name}'")
            continue
        if not isinstance(value, str):
            bundle.warnings.append(f"Ignored non-text content for '{name}'")
            continue
        if bundle.get(kind) is not None:
            continue
        bundle.set(kind, value)

    for key in METADATA_FIELDS:
        value = decoded.get(key)
        if isinstance(value, str) and value.strip():
            bundle.metadata[key] = value[:settings.METADATA_CHAR_LIMIT]
    if "usedModel" not in bundle.metadata and isinstance(decoded.get("model"), str):
        bundle.metadata["usedModel"] = decoded["model"][:settings.METADATA_CHAR_LIMIT]

    logger.debug(
        f"[StrictParser] Coerced {len(bundle.files)} file(s), {len(bundle.metadata)} metadata field(s)"
    )
    return bundle
