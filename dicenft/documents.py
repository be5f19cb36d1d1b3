"""Loading and dumping stored token documents.

Documents are checked against their JSON Schema before decoding, so a
malformed file fails with ``SchemaValidationError`` naming the offending path
rather than with an error from deep inside a ``from_dict``.
"""

from __future__ import annotations

import json
import pathlib
from typing import Any, Optional

from dicenft.collateral import CollateralInfo
from dicenft.core import canonical_json_bytes, load_json
from dicenft.metadata import Metadata
from dicenft.schema import COLLATERAL_INFO_SCHEMA, METADATA_SCHEMA, TOKEN_SCHEMA, require_valid
from dicenft.token import Token


def decode_token(obj: Any) -> Token:
    require_valid(obj, TOKEN_SCHEMA)
    return Token.from_dict(obj)


def decode_collateral(obj: Any) -> Optional[CollateralInfo]:
    """``None`` (JSON null) stands for "no record"."""
    if obj is None:
        return None
    require_valid(obj, COLLATERAL_INFO_SCHEMA)
    return CollateralInfo.from_dict(obj)


def decode_metadata(obj: Any) -> Metadata:
    require_valid(obj, METADATA_SCHEMA)
    return Metadata.from_dict(obj)


def load_token(path: pathlib.Path) -> Token:
    return decode_token(load_json(path))


def load_collateral(path: pathlib.Path) -> Optional[CollateralInfo]:
    return decode_collateral(load_json(path))


def load_metadata(path: pathlib.Path) -> Metadata:
    return decode_metadata(load_json(path))


def dump_json(value: Any, indent: Optional[int] = None) -> str:
    """JSON for a value with ``to_dict``; canonical bytes when ``indent`` is None."""
    obj = value.to_dict() if hasattr(value, "to_dict") else value
    if indent is None:
        return canonical_json_bytes(obj).decode("utf-8")
    return json.dumps(obj, indent=indent, sort_keys=True, ensure_ascii=False)
