"""
Token metadata model.

Field names follow the OpenSea metadata standard as extended by Stashh
(media files with authentication, protected attributes) and are the wire
contract for stored metadata. ``Extension.with_colours`` seeds the dice
colour traits from a ``Prng``.

URLs are conventionally prefixed with ``http://``, ``https://``, ``ipfs://``
or ``ar://``. Exactly one of ``Metadata.token_uri`` / ``Metadata.extension``
should be set. Neither convention is enforced on construction;
``Metadata.validate`` reports departures from them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from dicenft.errors import DecodeError
from dicenft.prng import Prng

DEFAULT_DESCRIPTION = "A dice set for web3 gaming"
DEFAULT_NAME = "Poker Joke Dice"

# Domain-separation tag for trait generation; other seeded uses pick other tags
DICE_COLOUR_TAG = bytes([12])
DICE_COLOUR_TRAITS = 3

COLOUR_SIZE = 3
URL_SCHEMES = ("http://", "https://", "ipfs://", "ar://")
HEX_COLOUR_PATTERN = re.compile(r"^[0-9a-f]{6}$")


# =============================================================================
# DECODING HELPERS
# =============================================================================

def _require_dict(d: Any, field_name: str) -> Dict[str, Any]:
    if not isinstance(d, dict):
        raise DecodeError(field_name, "expected object", d)
    return d


def _opt_str(d: Dict[str, Any], key: str, prefix: str) -> Optional[str]:
    value = d.get(key)
    if value is not None and not isinstance(value, str):
        raise DecodeError(f"{prefix}.{key}", "expected string or null", value)
    return value


def _req_str(d: Dict[str, Any], key: str, prefix: str) -> str:
    value = d.get(key)
    if not isinstance(value, str):
        raise DecodeError(f"{prefix}.{key}", "expected string", value)
    return value


def _opt_str_list(d: Dict[str, Any], key: str, prefix: str) -> Optional[List[str]]:
    value = d.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise DecodeError(f"{prefix}.{key}", "expected list of strings or null", value)
    return list(value)


# =============================================================================
# COLOUR
# =============================================================================

@dataclass(frozen=True)
class Colour:
    """Three raw colour bytes, rendered as six lowercase hex characters."""
    channels: bytes

    def __post_init__(self):
        if len(self.channels) != COLOUR_SIZE:
            raise ValueError(f"Colour takes {COLOUR_SIZE} bytes, got {len(self.channels)}")

    @classmethod
    def draw(cls, prng: Prng) -> "Colour":
        """Take one draw and keep its first three bytes as-is."""
        return cls(prng.rand_bytes()[:COLOUR_SIZE])

    def hex(self) -> str:
        return self.channels.hex()

    def __str__(self) -> str:
        return self.hex()


# =============================================================================
# METADATA VALUES
# =============================================================================

@dataclass
class Trait:
    """A single item attribute."""
    value: str
    display_type: Optional[str] = None
    trait_type: Optional[str] = None
    max_value: Optional[str] = None

    @classmethod
    def dice_colour(cls, prng: Prng) -> "Trait":
        """Unlabeled trait whose value is a freshly drawn colour."""
        return cls(value=Colour.draw(prng).hex())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "display_type": self.display_type,
            "trait_type": self.trait_type,
            "value": self.value,
            "max_value": self.max_value,
        }

    @classmethod
    def from_dict(cls, d: Any, prefix: str = "trait") -> "Trait":
        d = _require_dict(d, prefix)
        return cls(
            display_type=_opt_str(d, "display_type", prefix),
            trait_type=_opt_str(d, "trait_type", prefix),
            value=_req_str(d, "value", prefix),
            max_value=_opt_str(d, "max_value", prefix),
        )


@dataclass
class Authentication:
    """Decryption key or basic-auth password, plus optional username."""
    key: Optional[str] = None
    user: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "user": self.user}

    @classmethod
    def from_dict(cls, d: Any, prefix: str = "authentication") -> "Authentication":
        d = _require_dict(d, prefix)
        return cls(key=_opt_str(d, "key", prefix), user=_opt_str(d, "user", prefix))


@dataclass
class MediaFile:
    """
    A media attachment.

    ``file_type`` values in use: "image", "video", "audio", "text", "font",
    "application".
    """
    url: str
    file_type: Optional[str] = None
    extension: Optional[str] = None
    authentication: Optional[Authentication] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_type": self.file_type,
            "extension": self.extension,
            "authentication": self.authentication.to_dict() if self.authentication else None,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, d: Any, prefix: str = "media") -> "MediaFile":
        d = _require_dict(d, prefix)
        auth = d.get("authentication")
        return cls(
            file_type=_opt_str(d, "file_type", prefix),
            extension=_opt_str(d, "extension", prefix),
            authentication=Authentication.from_dict(auth, f"{prefix}.authentication") if auth is not None else None,
            url=_req_str(d, "url", prefix),
        )


@dataclass
class Extension:
    """
    On-chain metadata payload.

    ``xp`` (dice experience level) is the only required field; construct
    defaults through ``Extension.default()`` rather than field by field.
    """
    xp: int
    image: Optional[str] = None
    image_data: Optional[str] = None
    external_url: Optional[str] = None
    description: Optional[str] = None
    name: Optional[str] = None
    attributes: List[Trait] = field(default_factory=list)
    background_color: Optional[str] = None
    animation_url: Optional[str] = None
    youtube_url: Optional[str] = None
    media: Optional[List[MediaFile]] = None
    protected_attributes: Optional[List[str]] = None

    def __post_init__(self):
        if isinstance(self.xp, bool) or not isinstance(self.xp, int) or not 0 <= self.xp < 2 ** 32:
            raise ValueError(f"xp must be an unsigned 32-bit integer, got {self.xp!r}")

    @classmethod
    def default(cls) -> "Extension":
        return cls(
            xp=0,
            description=DEFAULT_DESCRIPTION,
            name=DEFAULT_NAME,
            attributes=[],
        )

    @classmethod
    def with_colours(cls, seed: bytes) -> "Extension":
        """
        Default extension with three colour traits and a background colour.

        One generator is created for the call: draws 1-3 become the trait
        values, draw 4 the background colour. The same seed always yields the
        same extension.
        """
        prng = Prng(DICE_COLOUR_TAG, seed)
        traits = [Trait.dice_colour(prng) for _ in range(DICE_COLOUR_TRAITS)]
        background = Colour.draw(prng)
        return replace(cls.default(), attributes=traits, background_color=background.hex())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "image": self.image,
            "image_data": self.image_data,
            "external_url": self.external_url,
            "description": self.description,
            "xp": self.xp,
            "name": self.name,
            "attributes": [t.to_dict() for t in self.attributes],
            "background_color": self.background_color,
            "animation_url": self.animation_url,
            "youtube_url": self.youtube_url,
            "media": [m.to_dict() for m in self.media] if self.media is not None else None,
            "protected_attributes": list(self.protected_attributes) if self.protected_attributes is not None else None,
        }

    @classmethod
    def from_dict(cls, d: Any, prefix: str = "extension") -> "Extension":
        d = _require_dict(d, prefix)
        xp = d.get("xp")
        if isinstance(xp, bool) or not isinstance(xp, int) or not 0 <= xp < 2 ** 32:
            raise DecodeError(f"{prefix}.xp", "expected unsigned 32-bit integer", xp)
        attributes = d.get("attributes")
        if not isinstance(attributes, list):
            raise DecodeError(f"{prefix}.attributes", "expected list", attributes)
        media = d.get("media")
        if media is not None and not isinstance(media, list):
            raise DecodeError(f"{prefix}.media", "expected list or null", media)
        return cls(
            image=_opt_str(d, "image", prefix),
            image_data=_opt_str(d, "image_data", prefix),
            external_url=_opt_str(d, "external_url", prefix),
            description=_opt_str(d, "description", prefix),
            xp=xp,
            name=_opt_str(d, "name", prefix),
            attributes=[Trait.from_dict(t, f"{prefix}.attributes[{i}]") for i, t in enumerate(attributes)],
            background_color=_opt_str(d, "background_color", prefix),
            animation_url=_opt_str(d, "animation_url", prefix),
            youtube_url=_opt_str(d, "youtube_url", prefix),
            media=[MediaFile.from_dict(m, f"{prefix}.media[{i}]") for i, m in enumerate(media)] if media is not None else None,
            protected_attributes=_opt_str_list(d, "protected_attributes", prefix),
        )


@dataclass
class Metadata:
    """Off-chain URI or inline extension for a token."""
    token_uri: Optional[str] = None
    extension: Optional[Extension] = None

    def validate(self) -> List[str]:
        """
        Report departures from the metadata conventions.

        Returns a list of messages (empty if the metadata follows them). Nothing
        here is fatal; callers decide whether to reject.
        """
        issues: List[str] = []
        if self.token_uri is not None and self.extension is not None:
            issues.append("both token_uri and extension are set; use one")
        if self.token_uri is None and self.extension is None:
            issues.append("neither token_uri nor extension is set")

        urls = {"token_uri": self.token_uri}
        ext = self.extension
        if ext is not None:
            urls.update({
                "extension.image": ext.image,
                "extension.external_url": ext.external_url,
                "extension.animation_url": ext.animation_url,
                "extension.youtube_url": ext.youtube_url,
            })
            for i, m in enumerate(ext.media or []):
                urls[f"extension.media[{i}].url"] = m.url
            if ext.background_color is not None and not HEX_COLOUR_PATTERN.match(ext.background_color):
                issues.append(
                    f"extension.background_color: expected six lowercase hex characters, got {ext.background_color!r}"
                )

        for name, url in urls.items():
            if url is not None and not url.startswith(URL_SCHEMES):
                issues.append(f"{name}: url should start with one of {', '.join(URL_SCHEMES)}")
        return issues

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token_uri": self.token_uri,
            "extension": self.extension.to_dict() if self.extension is not None else None,
        }

    @classmethod
    def from_dict(cls, d: Any, prefix: str = "metadata") -> "Metadata":
        d = _require_dict(d, prefix)
        ext = d.get("extension")
        return cls(
            token_uri=_opt_str(d, "token_uri", prefix),
            extension=Extension.from_dict(ext, f"{prefix}.extension") if ext is not None else None,
        )
