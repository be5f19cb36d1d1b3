"""
Permission model and authorization gate.

A ``Permission`` is one grantee's set of capability grants on a token: one
optional ``Expiration`` per ``PermissionType``. An empty slot means the
category is not granted; a filled slot grants it until the expiration
elapses. Expired grants are inert but stay in the list until ``compact`` is
run; the authorization check itself never removes anything.

Policy (evaluated only after the token's collateral lock):

    1. the owner is authorized for every category
    2. otherwise the requester's grant for the category is looked up
    3. an expired grant counts as absent
    4. anything else is denied
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

from dicenft.errors import DecodeError, InvalidPermission, Unauthorized
from dicenft.expiration import BlockInfo, Expiration
from dicenft.primitives import CanonicalAddr


class PermissionType(Enum):
    """Action categories a grant can cover. ``index`` is the slot position on the wire."""
    VIEW_OWNER = "view_owner"
    VIEW_PRIVATE_METADATA = "view_private_metadata"
    TRANSFER = "transfer"

    @property
    def index(self) -> int:
        return _PERMISSION_INDEX[self]

    @classmethod
    def count(cls) -> int:
        return len(_PERMISSION_INDEX)


_PERMISSION_INDEX = {ptype: i for i, ptype in enumerate(PermissionType)}


def _empty_slots() -> List[Optional[Expiration]]:
    return [None] * PermissionType.count()


@dataclass
class Permission:
    """Grants held by one address."""
    address: CanonicalAddr
    expirations: List[Optional[Expiration]] = field(default_factory=_empty_slots)

    def __post_init__(self):
        if len(self.expirations) != PermissionType.count():
            raise ValueError(
                f"Permission needs {PermissionType.count()} expiration slots, got {len(self.expirations)}"
            )

    def expiration_for(self, ptype: PermissionType) -> Optional[Expiration]:
        return self.expirations[ptype.index]

    def grants(self, ptype: PermissionType) -> bool:
        """True if the slot is filled, live or not."""
        return self.expirations[ptype.index] is not None

    def is_live(self, ptype: PermissionType, block: BlockInfo) -> bool:
        exp = self.expirations[ptype.index]
        return exp is not None and not exp.is_expired(block)

    def is_empty(self) -> bool:
        return all(e is None for e in self.expirations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address.to_base64(),
            "expirations": [e.to_dict() if e is not None else None for e in self.expirations],
        }

    @classmethod
    def from_dict(cls, d: Any, prefix: str = "permission") -> "Permission":
        if not isinstance(d, dict):
            raise DecodeError(prefix, "expected object", d)
        slots = d.get("expirations")
        if not isinstance(slots, list) or len(slots) != PermissionType.count():
            raise DecodeError(f"{prefix}.expirations", f"expected list of {PermissionType.count()}", slots)
        return cls(
            address=CanonicalAddr.from_base64(d.get("address"), f"{prefix}.address"),
            expirations=[
                Expiration.from_dict(e, f"{prefix}.expirations[{i}]") if e is not None else None
                for i, e in enumerate(slots)
            ],
        )


# =============================================================================
# AUTHORIZATION GATE
# =============================================================================

def find_permission(permissions: Sequence[Permission], address: CanonicalAddr) -> Optional[Permission]:
    """First entry for ``address``, or None."""
    for perm in permissions:
        if perm.address == address:
            return perm
    return None


def is_authorized(
    owner: CanonicalAddr,
    permissions: Sequence[Permission],
    requester: CanonicalAddr,
    ptype: PermissionType,
    block: BlockInfo,
) -> bool:
    if requester == owner:
        return True
    return any(perm.address == requester and perm.is_live(ptype, block) for perm in permissions)


def check_permission(
    owner: CanonicalAddr,
    permissions: Sequence[Permission],
    requester: CanonicalAddr,
    ptype: PermissionType,
    block: BlockInfo,
    token_id: str = "",
) -> None:
    """Raise ``Unauthorized`` unless the requester holds ``ptype``."""
    if not is_authorized(owner, permissions, requester, ptype, block):
        raise Unauthorized(
            f"{requester} is not authorized for {ptype.value}",
            action=ptype.value,
            token_id=token_id,
        )


# =============================================================================
# GRANT MAINTENANCE
# =============================================================================

def _copy(perm: Permission) -> Permission:
    return Permission(address=perm.address, expirations=list(perm.expirations))


def _check_types(types: Iterable[PermissionType]) -> List[PermissionType]:
    out = list(dict.fromkeys(types))
    if not out:
        raise InvalidPermission("at least one permission type is required")
    for t in out:
        if not isinstance(t, PermissionType):
            raise InvalidPermission(f"unknown permission type {t!r}")
    return out


def merge_grant(
    permissions: Sequence[Permission],
    grantee: CanonicalAddr,
    types: Iterable[PermissionType],
    expiration: Expiration,
    max_grantees: Optional[int] = None,
) -> List[Permission]:
    """
    Return a new permission list with ``types`` granted to ``grantee``.

    A grantee has at most one entry; granting a category it already holds
    replaces that slot's expiration.
    """
    types = _check_types(types)
    out = [_copy(p) for p in permissions]
    entry = find_permission(out, grantee)
    if entry is None:
        if max_grantees is not None and len(out) >= max_grantees:
            raise InvalidPermission(f"token already has the maximum of {max_grantees} grantees")
        entry = Permission(address=grantee)
        out.append(entry)
    for t in types:
        entry.expirations[t.index] = expiration
    return out


def remove_grant(
    permissions: Sequence[Permission],
    grantee: CanonicalAddr,
    types: Iterable[PermissionType],
) -> List[Permission]:
    """Return a new permission list with ``types`` cleared for ``grantee``; empty entries are dropped."""
    types = _check_types(types)
    out: List[Permission] = []
    for perm in permissions:
        perm = _copy(perm)
        if perm.address == grantee:
            for t in types:
                perm.expirations[t.index] = None
            if perm.is_empty():
                continue
        out.append(perm)
    return out


def compact(permissions: Sequence[Permission], block: BlockInfo) -> List[Permission]:
    """Drop expired grant slots and the entries left empty by that."""
    out: List[Permission] = []
    for perm in permissions:
        slots = [e if e is not None and not e.is_expired(block) else None for e in perm.expirations]
        if any(s is not None for s in slots):
            out.append(Permission(address=perm.address, expirations=slots))
    return out
