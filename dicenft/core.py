"""Core primitives shared by the token modules.

- SHA-256 hashing
- Canonical JSON serialization (JCS/RFC8785 subset)
- YAML/JSON loading with consistent encoding
- Location of the bundled JSON schemas
"""

from __future__ import annotations

import hashlib
import json
import pathlib
from typing import Any

import yaml


SCHEMAS_DIR = pathlib.Path(__file__).resolve().parent / "schemas"


def sha256_bytes(data: bytes) -> str:
    """Compute SHA-256 hash of bytes, returning lowercase hex string."""
    return hashlib.sha256(data).hexdigest()


def load_yaml(path: pathlib.Path) -> Any:
    """Load YAML file with UTF-8 encoding."""
    return yaml.safe_load(pathlib.Path(path).read_text(encoding="utf-8"))


def load_json(path: pathlib.Path) -> Any:
    """Load JSON file with UTF-8 encoding."""
    return json.loads(pathlib.Path(path).read_text(encoding="utf-8"))


def canonical_json_bytes(obj: Any) -> bytes:
    """Serialize object to canonical JSON bytes.

    Properties:
    - Keys sorted lexicographically
    - No whitespace
    - UTF-8 encoded
    - Floats rejected (amounts travel as decimal strings)

    Two values that compare equal serialize to the same bytes, which is what the
    state-unchanged-on-error checks and audit digests rely on.
    """
    def _reject_floats(o: Any, path: str = "") -> None:
        if isinstance(o, float):
            raise ValueError(f"Float not allowed in canonical JSON at {path}")
        if isinstance(o, dict):
            for k, v in o.items():
                _reject_floats(v, f"{path}.{k}")
        if isinstance(o, list):
            for i, v in enumerate(o):
                _reject_floats(v, f"{path}[{i}]")

    _reject_floats(obj)
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def digest(obj: Any) -> str:
    """SHA-256 of the canonical JSON form of ``obj`` (a dict or a value with ``to_dict``)."""
    if hasattr(obj, "to_dict"):
        obj = obj.to_dict()
    return sha256_bytes(canonical_json_bytes(obj))
