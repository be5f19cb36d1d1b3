"""
Token engine.

``TokenEngine`` owns one token's state (the ``Token`` and, while pledged,
its ``CollateralInfo``) and is the only place that state changes. Each
method runs the matching pure operation from ``dicenft.token`` or
``dicenft.collateral`` against the current state and commits the result
only if it returns; a rejected call raises and leaves the state untouched.

Commits are serialized with a lock, so a shared engine processes one
operation to completion before the next is evaluated.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Optional, TypeVar

from dicenft import collateral as lifecycle
from dicenft import token as ops
from dicenft.collateral import CollateralInfo, CollateralState, Settlement, collateral_state
from dicenft.config import DiceNftConfig, get_config
from dicenft.errors import DiceNftError, InsufficientPayment, TokenError
from dicenft.expiration import BlockInfo, Expiration
from dicenft.observability import AuditLogger, Layer, get_logger
from dicenft.permissions import PermissionType
from dicenft.primitives import CanonicalAddr, Coin
from dicenft.token import Token, TokenAction

R = TypeVar("R")


class TokenEngine:
    """Serialized, logged access to one token's state."""

    def __init__(
        self,
        token_id: str,
        token: Token,
        collateral: Optional[CollateralInfo] = None,
        config: Optional[DiceNftConfig] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.token_id = token_id
        self._token = token.copy()
        self._collateral = collateral.copy() if collateral is not None else None
        self._config = config or get_config()
        self._log = get_logger("engine", Layer.ENGINE)
        self._audit = audit or AuditLogger(get_logger("audit", Layer.TOKEN))
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def token(self) -> Token:
        return self._token.copy()

    @property
    def collateral(self) -> Optional[CollateralInfo]:
        return self._collateral.copy() if self._collateral is not None else None

    @property
    def state(self) -> CollateralState:
        return collateral_state(self._token, self._collateral)

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def _run(self, action: TokenAction, requester: CanonicalAddr, fn: Callable[[], R]) -> R:
        try:
            return fn()
        except DiceNftError as e:
            self._log.info(
                f"{action.value} rejected: {e}",
                operation=action.value,
                error_code=e.code,
                token_id=self.token_id,
                requester=str(requester),
            )
            raise

    def _record(self, actor: CanonicalAddr, action: TokenAction, level: int = logging.INFO, **details) -> None:
        if self._config.observability.audit_enabled.get():
            self._audit.log(str(actor), action.value, self.token_id, "success", level=level, **details)

    def _require_amount(self, amount: Optional[Coin], action: TokenAction) -> None:
        if amount is None and self._config.collateral.require_payment.get():
            raise InsufficientPayment(
                f"{action.value} must state the amount paid",
                action=action.value,
                token_id=self.token_id,
            )

    # -------------------------------------------------------------------------
    # Token operations
    # -------------------------------------------------------------------------

    def is_authorized(self, requester: CanonicalAddr, action: TokenAction, block: BlockInfo) -> bool:
        """Lock and authorization gates only; never raises for a denial."""
        try:
            ops.authorize(self._token, requester, action, block, self.token_id)
        except TokenError:
            return False
        return True

    def view_owner(self, requester: CanonicalAddr, block: BlockInfo) -> CanonicalAddr:
        with self._lock:
            return self._run(
                TokenAction.VIEW_OWNER, requester,
                lambda: ops.view_owner(self._token, requester, block, self.token_id),
            )

    def view_private_metadata(self, requester: CanonicalAddr, block: BlockInfo) -> bool:
        with self._lock:
            return self._run(
                TokenAction.VIEW_PRIVATE_METADATA, requester,
                lambda: ops.view_private_metadata(self._token, requester, block, self.token_id),
            )

    def transfer(self, requester: CanonicalAddr, recipient: CanonicalAddr, block: BlockInfo) -> Token:
        with self._lock:
            previous = self._token.owner
            self._token = self._run(
                TokenAction.TRANSFER, requester,
                lambda: ops.transfer(self._token, requester, recipient, block, self.token_id),
            )
            self._record(requester, TokenAction.TRANSFER, previous_owner=str(previous), owner=str(recipient))
            return self.token

    def unwrap(self, requester: CanonicalAddr, block: BlockInfo) -> Token:
        with self._lock:
            self._token = self._run(
                TokenAction.UNWRAP, requester,
                lambda: ops.unwrap(self._token, requester, block, self.token_id),
            )
            self._log.info("token unwrapped", operation="unwrap", token_id=self.token_id)
            return self.token

    def grant(
        self,
        requester: CanonicalAddr,
        grantee: CanonicalAddr,
        types: Iterable[PermissionType],
        block: BlockInfo,
        expiration: Optional[Expiration] = None,
    ) -> Token:
        types = list(types)
        max_grantees = self._config.permissions.max_grantees.get()
        with self._lock:
            self._token = self._run(
                TokenAction.GRANT, requester,
                lambda: ops.grant(
                    self._token, requester, grantee, types, block,
                    expiration=expiration, max_grantees=max_grantees, token_id=self.token_id,
                ),
            )
            self._record(
                requester, TokenAction.GRANT,
                grantee=str(grantee),
                types=[t.value for t in types],
                expiration=str(expiration or Expiration.never()),
            )
            return self.token

    def revoke(
        self,
        requester: CanonicalAddr,
        grantee: CanonicalAddr,
        types: Iterable[PermissionType],
        block: BlockInfo,
    ) -> Token:
        types = list(types)
        with self._lock:
            self._token = self._run(
                TokenAction.REVOKE, requester,
                lambda: ops.revoke(self._token, requester, grantee, types, block, self.token_id),
            )
            self._record(requester, TokenAction.REVOKE, grantee=str(grantee), types=[t.value for t in types])
            return self.token

    def compact_permissions(self, requester: CanonicalAddr, block: BlockInfo) -> Token:
        with self._lock:
            before = len(self._token.permissions)
            self._token = self._run(
                TokenAction.COMPACT, requester,
                lambda: ops.compact_permissions(self._token, requester, block, self.token_id),
            )
            self._log.debug(
                "permissions compacted",
                operation="compact",
                token_id=self.token_id,
                removed=before - len(self._token.permissions),
            )
            return self.token

    # -------------------------------------------------------------------------
    # Collateral lifecycle
    # -------------------------------------------------------------------------

    def collateralise(
        self,
        requester: CanonicalAddr,
        price: Coin,
        repayment: Coin,
        expiration: Expiration,
        block: BlockInfo,
    ) -> CollateralInfo:
        with self._lock:
            token, info = self._run(
                TokenAction.COLLATERALISE, requester,
                lambda: lifecycle.collateralise(
                    self._token, requester, price, repayment, expiration, block, self.token_id,
                ),
            )
            self._token, self._collateral = token, info
            self._record(
                requester, TokenAction.COLLATERALISE,
                price=str(price), repayment=str(repayment), expiration=str(expiration),
            )
            return info.copy()

    def accept_collateral(self, taker: CanonicalAddr, block: BlockInfo, offer: Optional[Coin] = None) -> CollateralInfo:
        with self._lock:
            def _accept() -> CollateralInfo:
                info = lifecycle.accept_collateral(self._token, self._collateral, taker, block, offer, self.token_id)
                self._require_amount(offer, TokenAction.ACCEPT_COLLATERAL)
                return info

            self._collateral = self._run(TokenAction.ACCEPT_COLLATERAL, taker, _accept)
            self._record(taker, TokenAction.ACCEPT_COLLATERAL, offer=str(offer) if offer else None)
            return self._collateral.copy()

    def repay(self, requester: CanonicalAddr, block: BlockInfo, payment: Optional[Coin] = None) -> Settlement:
        with self._lock:
            def _repay():
                result = lifecycle.repay(self._token, self._collateral, requester, block, payment, self.token_id)
                self._require_amount(payment, TokenAction.REPAY)
                return result

            token, settlement = self._run(TokenAction.REPAY, requester, _repay)
            self._token, self._collateral = token, None
            self._record(requester, TokenAction.REPAY, settlement=settlement.to_dict())
            return settlement

    def redeem(self, requester: CanonicalAddr, block: BlockInfo) -> Settlement:
        with self._lock:
            token, settlement = self._run(
                TokenAction.REDEEM, requester,
                lambda: lifecycle.redeem(self._token, self._collateral, requester, block, self.token_id),
            )
            self._token, self._collateral = token, None
            self._record(requester, TokenAction.REDEEM, settlement=settlement.to_dict())
            return settlement

    def uncollateralise(self, requester: CanonicalAddr) -> Token:
        """Administrative release without settlement; audited at WARNING."""
        with self._lock:
            dropped = self._collateral
            prior_state = self.state
            self._token = self._run(
                TokenAction.UNCOLLATERALISE, requester,
                lambda: lifecycle.uncollateralise(
                    self._token, self._collateral, requester,
                    self._config.collateral.administrator_addresses(), self.token_id,
                ),
            )
            self._collateral = None
            self._log.warning(
                "collateral cleared without settlement",
                operation=TokenAction.UNCOLLATERALISE.value,
                token_id=self.token_id,
                requester=str(requester),
                prior_state=prior_state.value,
            )
            self._record(
                requester, TokenAction.UNCOLLATERALISE,
                level=logging.WARNING,
                override=True,
                prior_state=prior_state.value,
                dropped_collateral=dropped.to_dict() if dropped is not None else None,
            )
            return self.token
