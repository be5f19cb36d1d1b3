"""
dicenft: ownership, permissioning and collateral locking for dice NFTs

Layout
──────

    expiration.py    Expiration gate over a caller-supplied BlockInfo
    prng.py          Seeded ChaCha20 attribute generator
    metadata.py      Metadata / Extension model and the dice colour builder
    permissions.py   Capability grants and the authorization gate
    token.py         Token entity, collateral lock gate, token operations
    collateral.py    Collateral lifecycle (pledge, accept, repay, redeem)
    engine.py        Serialized, logged, audited access to one token
    documents.py     Schema-checked loading of stored documents
    config.py        YAML / environment configuration
    observability.py Structured logging and the audit trail

Core rule
─────────

    While a token is collateralised every operation on it fails with
    TokenLocked, even for the owner, except the collateral release actions
    (accept, repay, redeem, uncollateralise).
"""

__version__ = "0.3.0"


# Lazy imports of the public API
def __getattr__(name):
    if name in ("BlockInfo", "Expiration", "ExpirationKind"):
        from dicenft import expiration
        return getattr(expiration, name)

    if name in ("CanonicalAddr", "Coin"):
        from dicenft import primitives
        return getattr(primitives, name)

    if name == "Prng":
        from dicenft.prng import Prng
        return Prng

    if name in ("Metadata", "Extension", "Trait", "MediaFile", "Authentication", "Colour"):
        from dicenft import metadata
        return getattr(metadata, name)

    if name in ("Permission", "PermissionType"):
        from dicenft import permissions
        return getattr(permissions, name)

    if name in ("Token", "TokenAction"):
        from dicenft import token
        return getattr(token, name)

    if name in ("CollateralInfo", "CollateralState", "Settlement"):
        from dicenft import collateral
        return getattr(collateral, name)

    if name == "TokenEngine":
        from dicenft.engine import TokenEngine
        return TokenEngine

    if name in ("DiceNftError", "TokenError", "TokenLocked", "Unauthorized", "InvalidTransition",
                "NotYetRedeemable", "InsufficientPayment", "InvalidPermission"):
        from dicenft import errors
        return getattr(errors, name)

    raise AttributeError(f"module 'dicenft' has no attribute '{name}'")


__all__ = [
    "__version__",
    "BlockInfo",
    "Expiration",
    "ExpirationKind",
    "CanonicalAddr",
    "Coin",
    "Prng",
    "Metadata",
    "Extension",
    "Trait",
    "MediaFile",
    "Authentication",
    "Colour",
    "Permission",
    "PermissionType",
    "Token",
    "TokenAction",
    "CollateralInfo",
    "CollateralState",
    "Settlement",
    "TokenEngine",
    "DiceNftError",
    "TokenError",
    "TokenLocked",
    "Unauthorized",
    "InvalidTransition",
    "NotYetRedeemable",
    "InsufficientPayment",
    "InvalidPermission",
]
