"""
Collateral lifecycle.

A token pledged as collateral is locked: ``Token.collateralised`` is set and a
``CollateralInfo`` record is kept alongside it (not inside it) until the
pledge resolves.

States::

    UNPLEDGED --collateralise--> PLEDGED --accept--> HELD
        ^                           |                  |
        |                           |   repay (owner)  |
        +------ uncollateralise ----+------------------+
        |                              redeem (holder, after expiration)
        +----------------------------------------------+

``uncollateralise`` is an administrative escape hatch: it clears the lock
without settling the agreement. Callers must record it apart from normal
release (the engine writes a dedicated audit event).

All functions are pure. They return new values and leave their inputs as
they were, including on every error path.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Collection, Dict, Optional, Tuple

from dicenft.errors import (
    DecodeError,
    InsufficientPayment,
    InvalidTransition,
    NotYetRedeemable,
    Unauthorized,
)
from dicenft.expiration import BlockInfo, Expiration
from dicenft.primitives import CanonicalAddr, Coin
from dicenft.token import Token, TokenAction, ensure_owner, ensure_unlocked


class CollateralState(Enum):
    UNPLEDGED = "unpledged"
    PLEDGED = "pledged"
    HELD = "held"
    # flag set but no record: only uncollateralise can clear it
    ORPHANED = "orphaned"


@dataclass
class CollateralInfo:
    """Terms of a pledge and who currently holds it."""
    price: Coin = field(default_factory=Coin)
    repayment: Coin = field(default_factory=Coin)
    expiration: Expiration = field(default_factory=Expiration.never)
    holder: Optional[CanonicalAddr] = None

    def copy(self) -> "CollateralInfo":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "price": self.price.to_dict(),
            "repayment": self.repayment.to_dict(),
            "expiration": self.expiration.to_dict(),
            "holder": self.holder.to_base64() if self.holder is not None else None,
        }

    @classmethod
    def from_dict(cls, d: Any, prefix: str = "collateral") -> "CollateralInfo":
        if not isinstance(d, dict):
            raise DecodeError(prefix, "expected object", d)
        holder = d.get("holder")
        return cls(
            price=Coin.from_dict(d.get("price"), f"{prefix}.price"),
            repayment=Coin.from_dict(d.get("repayment"), f"{prefix}.repayment"),
            expiration=Expiration.from_dict(d.get("expiration"), f"{prefix}.expiration"),
            holder=CanonicalAddr.from_base64(holder, f"{prefix}.holder") if holder is not None else None,
        )


@dataclass(frozen=True)
class Settlement:
    """
    What a resolved pledge owes. Moving the funds is the host's job.

    ``payer`` pays ``amount`` to ``payee``; ``owner`` is the token owner
    after resolution.
    """
    kind: str
    payer: CanonicalAddr
    payee: CanonicalAddr
    amount: Optional[Coin]
    owner: CanonicalAddr

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "payer": self.payer.to_base64(),
            "payee": self.payee.to_base64(),
            "amount": self.amount.to_dict() if self.amount is not None else None,
            "owner": self.owner.to_base64(),
        }


def collateral_state(token: Token, collateral: Optional[CollateralInfo]) -> CollateralState:
    if not token.collateralised:
        return CollateralState.UNPLEDGED
    if collateral is None:
        return CollateralState.ORPHANED
    if collateral.holder is None:
        return CollateralState.PLEDGED
    return CollateralState.HELD


def _require_state(
    token: Token,
    collateral: Optional[CollateralInfo],
    expected: CollateralState,
    action: TokenAction,
    token_id: str,
) -> CollateralInfo:
    state = collateral_state(token, collateral)
    if state != expected:
        raise InvalidTransition(
            f"{action.value} requires a {expected.value} token, token is {state.value}",
            action=action.value,
            token_id=token_id,
        )
    return collateral


def _released(token: Token) -> Token:
    return replace(token.copy(), collateralised=False)


# =============================================================================
# LIFECYCLE OPERATIONS
# =============================================================================

def collateralise(
    token: Token,
    requester: CanonicalAddr,
    price: Coin,
    repayment: Coin,
    expiration: Expiration,
    block: BlockInfo,
    token_id: str = "",
) -> Tuple[Token, CollateralInfo]:
    """Pledge the token: lock it and open a record with no holder."""
    action = TokenAction.COLLATERALISE
    ensure_unlocked(token, action, token_id)
    ensure_owner(token, requester, action, token_id)
    if repayment.denom != price.denom:
        raise InvalidTransition(
            f"repayment denomination {repayment.denom!r} differs from price denomination {price.denom!r}",
            action=action.value,
            token_id=token_id,
        )
    if repayment.amount < price.amount:
        raise InvalidTransition(
            f"repayment {repayment} is below price {price}",
            action=action.value,
            token_id=token_id,
        )
    if expiration.is_expired(block):
        raise InvalidTransition(
            f"collateral expiration {expiration} has already passed",
            action=action.value,
            token_id=token_id,
        )
    locked = replace(token.copy(), collateralised=True)
    return locked, CollateralInfo(price=price, repayment=repayment, expiration=expiration, holder=None)


def accept_collateral(
    token: Token,
    collateral: Optional[CollateralInfo],
    taker: CanonicalAddr,
    block: BlockInfo,
    offer: Optional[Coin] = None,
    token_id: str = "",
) -> CollateralInfo:
    """Take the open pledge. ``offer``, when given, must cover the price."""
    action = TokenAction.ACCEPT_COLLATERAL
    ensure_unlocked(token, action, token_id)
    info = _require_state(token, collateral, CollateralState.PLEDGED, action, token_id)
    if taker == token.owner:
        raise Unauthorized("the owner cannot take their own pledge", action=action.value, token_id=token_id)
    if offer is not None and not offer.covers(info.price):
        raise InsufficientPayment(
            f"offer {offer} does not cover price {info.price}",
            action=action.value,
            token_id=token_id,
        )
    return replace(info, holder=taker)


def repay(
    token: Token,
    collateral: Optional[CollateralInfo],
    requester: CanonicalAddr,
    block: BlockInfo,
    payment: Optional[Coin] = None,
    token_id: str = "",
) -> Tuple[Token, Settlement]:
    """The pledger buys the token back at the repayment amount."""
    action = TokenAction.REPAY
    ensure_unlocked(token, action, token_id)
    info = _require_state(token, collateral, CollateralState.HELD, action, token_id)
    ensure_owner(token, requester, action, token_id)
    if payment is not None and not payment.covers(info.repayment):
        raise InsufficientPayment(
            f"payment {payment} does not cover repayment {info.repayment}",
            action=action.value,
            token_id=token_id,
        )
    settlement = Settlement(
        kind="repay",
        payer=token.owner,
        payee=info.holder,
        amount=info.repayment,
        owner=token.owner,
    )
    return _released(token), settlement


def redeem(
    token: Token,
    collateral: Optional[CollateralInfo],
    requester: CanonicalAddr,
    block: BlockInfo,
    token_id: str = "",
) -> Tuple[Token, Settlement]:
    """
    The holder claims the token once the expiration has elapsed.

    Ownership moves to the holder and grants made by the pledger are dropped.
    """
    action = TokenAction.REDEEM
    ensure_unlocked(token, action, token_id)
    info = _require_state(token, collateral, CollateralState.HELD, action, token_id)
    if requester != info.holder:
        raise Unauthorized("only the collateral holder may redeem", action=action.value, token_id=token_id)
    if not info.expiration.is_expired(block):
        raise NotYetRedeemable(
            f"collateral is redeemable from {info.expiration}",
            action=action.value,
            token_id=token_id,
        )
    settlement = Settlement(
        kind="redeem",
        payer=token.owner,
        payee=info.holder,
        amount=None,
        owner=info.holder,
    )
    return replace(_released(token), owner=info.holder, permissions=[]), settlement


def uncollateralise(
    token: Token,
    collateral: Optional[CollateralInfo],
    requester: CanonicalAddr,
    administrators: Collection[CanonicalAddr] = (),
    token_id: str = "",
) -> Token:
    """Clear the lock without settling. Owner or a configured administrator only."""
    action = TokenAction.UNCOLLATERALISE
    ensure_unlocked(token, action, token_id)
    if collateral_state(token, collateral) == CollateralState.UNPLEDGED:
        raise InvalidTransition("token is not collateralised", action=action.value, token_id=token_id)
    if requester != token.owner and requester not in administrators:
        raise Unauthorized(
            "only the owner or an administrator may uncollateralise",
            action=action.value,
            token_id=token_id,
        )
    return _released(token)
