"""
Token entity and the operations gated on it.

Every operation runs the same gates in the same order:

    1. collateral lock   - a collateralised token rejects everything except
                           the collateral release actions (TokenLocked), even
                           for the owner
    2. authorization     - owner, or a live grant for the action category
    3. state checks      - then a new Token is built; inputs are never mutated

Because operations return new values, a rejected call leaves the caller's
Token exactly as it was.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from dicenft.errors import DecodeError, InvalidPermission, InvalidTransition, TokenLocked, Unauthorized
from dicenft.expiration import BlockInfo, Expiration
from dicenft.permissions import (
    Permission,
    PermissionType,
    check_permission,
    compact,
    merge_grant,
    remove_grant,
)
from dicenft.primitives import CanonicalAddr


class TokenAction(Enum):
    """Every operation the core gates, by name."""
    VIEW_OWNER = "view_owner"
    VIEW_PRIVATE_METADATA = "view_private_metadata"
    TRANSFER = "transfer"
    UNWRAP = "unwrap"
    GRANT = "grant"
    REVOKE = "revoke"
    COMPACT = "compact"
    COLLATERALISE = "collateralise"
    ACCEPT_COLLATERAL = "accept_collateral"
    REPAY = "repay"
    REDEEM = "redeem"
    UNCOLLATERALISE = "uncollateralise"

    @property
    def allowed_while_locked(self) -> bool:
        return self in _COLLATERAL_RELEASE_ACTIONS

    @property
    def permission_type(self) -> Optional[PermissionType]:
        """Grantable category covering this action; None means owner-only or lifecycle-specific."""
        return _ACTION_PERMISSION.get(self)


_COLLATERAL_RELEASE_ACTIONS = frozenset({
    TokenAction.ACCEPT_COLLATERAL,
    TokenAction.REPAY,
    TokenAction.REDEEM,
    TokenAction.UNCOLLATERALISE,
})

_ACTION_PERMISSION = {
    TokenAction.VIEW_OWNER: PermissionType.VIEW_OWNER,
    TokenAction.VIEW_PRIVATE_METADATA: PermissionType.VIEW_PRIVATE_METADATA,
    TokenAction.TRANSFER: PermissionType.TRANSFER,
}


@dataclass
class Token:
    """Ownership, grants and lock state of one token."""
    owner: CanonicalAddr
    permissions: List[Permission] = field(default_factory=list)
    # always true when sealed metadata is not in use
    unwrapped: bool = True
    collateralised: bool = False

    def copy(self) -> "Token":
        return replace(
            self,
            permissions=[Permission(p.address, list(p.expirations)) for p in self.permissions],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner.to_base64(),
            "permissions": [p.to_dict() for p in self.permissions],
            "unwrapped": self.unwrapped,
            "collateralised": self.collateralised,
        }

    @classmethod
    def from_dict(cls, d: Any, prefix: str = "token") -> "Token":
        if not isinstance(d, dict):
            raise DecodeError(prefix, "expected object", d)
        perms = d.get("permissions")
        if not isinstance(perms, list):
            raise DecodeError(f"{prefix}.permissions", "expected list", perms)
        for key in ("unwrapped", "collateralised"):
            if not isinstance(d.get(key), bool):
                raise DecodeError(f"{prefix}.{key}", "expected boolean", d.get(key))
        return cls(
            owner=CanonicalAddr.from_base64(d.get("owner"), f"{prefix}.owner"),
            permissions=[Permission.from_dict(p, f"{prefix}.permissions[{i}]") for i, p in enumerate(perms)],
            unwrapped=d["unwrapped"],
            collateralised=d["collateralised"],
        )


# =============================================================================
# GATES
# =============================================================================

def ensure_unlocked(token: Token, action: TokenAction, token_id: str = "") -> None:
    """Raise ``TokenLocked`` if the token is collateralised and ``action`` is not a release action."""
    if token.collateralised and not action.allowed_while_locked:
        raise TokenLocked(
            f"token is collateralised; {action.value} is not permitted until the collateral is released",
            action=action.value,
            token_id=token_id,
        )


def ensure_owner(token: Token, requester: CanonicalAddr, action: TokenAction, token_id: str = "") -> None:
    if requester != token.owner:
        raise Unauthorized(
            f"only the owner may {action.value}",
            action=action.value,
            token_id=token_id,
        )


def authorize(
    token: Token,
    requester: CanonicalAddr,
    action: TokenAction,
    block: BlockInfo,
    token_id: str = "",
) -> None:
    """
    Full gate for a non-lifecycle action: lock first, then authorization.

    Actions without a grantable category are owner-only.
    """
    ensure_unlocked(token, action, token_id)
    ptype = action.permission_type
    if ptype is None:
        ensure_owner(token, requester, action, token_id)
    else:
        check_permission(token.owner, token.permissions, requester, ptype, block, token_id)


# =============================================================================
# OPERATIONS
# =============================================================================

def view_owner(token: Token, requester: CanonicalAddr, block: BlockInfo, token_id: str = "") -> CanonicalAddr:
    authorize(token, requester, TokenAction.VIEW_OWNER, block, token_id)
    return token.owner


def view_private_metadata(token: Token, requester: CanonicalAddr, block: BlockInfo, token_id: str = "") -> bool:
    """Authorize a private-metadata read; the metadata itself lives with the caller."""
    authorize(token, requester, TokenAction.VIEW_PRIVATE_METADATA, block, token_id)
    return True


def transfer(
    token: Token,
    requester: CanonicalAddr,
    recipient: CanonicalAddr,
    block: BlockInfo,
    token_id: str = "",
) -> Token:
    """Move ownership to ``recipient``. Grants made by the previous owner are dropped."""
    authorize(token, requester, TokenAction.TRANSFER, block, token_id)
    return replace(token.copy(), owner=recipient, permissions=[])


def unwrap(token: Token, requester: CanonicalAddr, block: BlockInfo, token_id: str = "") -> Token:
    """Mark sealed metadata as revealed."""
    authorize(token, requester, TokenAction.UNWRAP, block, token_id)
    if token.unwrapped:
        raise InvalidTransition("token has already been unwrapped", action=TokenAction.UNWRAP.value, token_id=token_id)
    return replace(token.copy(), unwrapped=True)


def grant(
    token: Token,
    requester: CanonicalAddr,
    grantee: CanonicalAddr,
    types: Iterable[PermissionType],
    block: BlockInfo,
    expiration: Optional[Expiration] = None,
    max_grantees: Optional[int] = None,
    token_id: str = "",
) -> Token:
    authorize(token, requester, TokenAction.GRANT, block, token_id)
    if grantee == token.owner:
        raise InvalidPermission("the owner cannot be granted permissions", action=TokenAction.GRANT.value, token_id=token_id)
    expiration = expiration or Expiration.never()
    if expiration.is_expired(block):
        raise InvalidPermission(f"grant expiration {expiration} has already passed", action=TokenAction.GRANT.value, token_id=token_id)
    perms = merge_grant(token.permissions, grantee, types, expiration, max_grantees)
    return replace(token.copy(), permissions=perms)


def revoke(
    token: Token,
    requester: CanonicalAddr,
    grantee: CanonicalAddr,
    types: Iterable[PermissionType],
    block: BlockInfo,
    token_id: str = "",
) -> Token:
    authorize(token, requester, TokenAction.REVOKE, block, token_id)
    return replace(token.copy(), permissions=remove_grant(token.permissions, grantee, types))


def compact_permissions(token: Token, requester: CanonicalAddr, block: BlockInfo, token_id: str = "") -> Token:
    """Owner-run maintenance pass dropping expired grants."""
    authorize(token, requester, TokenAction.COMPACT, block, token_id)
    return replace(token.copy(), permissions=compact(token.permissions, block))
