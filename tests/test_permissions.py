"""Permission model and authorization gate tests."""

import pytest

from dicenft.errors import DecodeError, InvalidPermission, Unauthorized
from dicenft.expiration import BlockInfo, Expiration
from dicenft.permissions import (
    Permission,
    PermissionType,
    check_permission,
    compact,
    find_permission,
    is_authorized,
    merge_grant,
    remove_grant,
)
from dicenft.primitives import CanonicalAddr


class TestPermissionValue:

    def test_slots_indexed_by_type(self):
        assert [t.index for t in PermissionType] == [0, 1, 2]
        assert PermissionType.count() == 3

    def test_empty_by_default(self, alice):
        perm = Permission(address=alice)
        assert perm.is_empty()
        assert not perm.grants(PermissionType.TRANSFER)

    def test_slot_count_enforced(self, alice):
        with pytest.raises(ValueError):
            Permission(address=alice, expirations=[None])

    def test_round_trip(self, alice):
        perm = Permission(alice, [Expiration.never(), None, Expiration.at_height(50)])
        d = perm.to_dict()
        assert d["expirations"] == ["never", None, {"at_height": 50}]
        assert Permission.from_dict(d) == perm

    def test_bad_address_rejected(self):
        with pytest.raises(DecodeError):
            Permission.from_dict({"address": "not base64!!", "expirations": [None, None, None]})


class TestAuthorizationGate:

    def test_owner_implicitly_authorized(self, owner, block):
        for ptype in PermissionType:
            assert is_authorized(owner, [], owner, ptype, block)

    def test_stranger_denied(self, owner, alice, block):
        assert not is_authorized(owner, [], alice, PermissionType.TRANSFER, block)
        with pytest.raises(Unauthorized):
            check_permission(owner, [], alice, PermissionType.TRANSFER, block)

    def test_live_grant_allows_only_its_category(self, owner, alice, block):
        perms = merge_grant([], alice, [PermissionType.TRANSFER], Expiration.never())
        assert is_authorized(owner, perms, alice, PermissionType.TRANSFER, block)
        assert not is_authorized(owner, perms, alice, PermissionType.VIEW_OWNER, block)

    def test_expired_grant_is_inert_but_kept(self, owner, alice):
        perms = merge_grant([], alice, [PermissionType.TRANSFER], Expiration.at_height(100))
        assert is_authorized(owner, perms, alice, PermissionType.TRANSFER, BlockInfo(99, 0))
        assert not is_authorized(owner, perms, alice, PermissionType.TRANSFER, BlockInfo(100, 0))
        assert len(perms) == 1

    def test_grant_to_other_address_does_not_leak(self, owner, alice, holder, block):
        perms = merge_grant([], holder, [PermissionType.TRANSFER], Expiration.never())
        assert not is_authorized(owner, perms, alice, PermissionType.TRANSFER, block)

    def test_unauthorized_names_category(self, owner, alice, block):
        with pytest.raises(Unauthorized) as exc:
            check_permission(owner, [], alice, PermissionType.VIEW_PRIVATE_METADATA, block, token_id="t1")
        assert exc.value.action == "view_private_metadata"
        assert exc.value.token_id == "t1"
        assert exc.value.code == "unauthorized"


class TestGrantMaintenance:

    def test_one_entry_per_grantee(self, alice):
        perms = merge_grant([], alice, [PermissionType.TRANSFER], Expiration.never())
        perms = merge_grant(perms, alice, [PermissionType.VIEW_OWNER], Expiration.at_time(10))
        assert len(perms) == 1
        assert perms[0].expiration_for(PermissionType.TRANSFER) == Expiration.never()
        assert perms[0].expiration_for(PermissionType.VIEW_OWNER) == Expiration.at_time(10)

    def test_regrant_replaces_expiration(self, alice):
        perms = merge_grant([], alice, [PermissionType.TRANSFER], Expiration.at_height(5))
        perms = merge_grant(perms, alice, [PermissionType.TRANSFER], Expiration.at_height(50))
        assert perms[0].expiration_for(PermissionType.TRANSFER) == Expiration.at_height(50)

    def test_merge_does_not_mutate_input(self, alice):
        original = merge_grant([], alice, [PermissionType.TRANSFER], Expiration.never())
        snapshot = [p.to_dict() for p in original]
        merge_grant(original, alice, [PermissionType.VIEW_OWNER], Expiration.never())
        assert [p.to_dict() for p in original] == snapshot

    def test_max_grantees(self, alice, holder):
        perms = merge_grant([], alice, [PermissionType.TRANSFER], Expiration.never(), max_grantees=1)
        with pytest.raises(InvalidPermission):
            merge_grant(perms, holder, [PermissionType.TRANSFER], Expiration.never(), max_grantees=1)
        # existing grantee can still be updated
        merge_grant(perms, alice, [PermissionType.VIEW_OWNER], Expiration.never(), max_grantees=1)

    def test_empty_type_list_rejected(self, alice):
        with pytest.raises(InvalidPermission):
            merge_grant([], alice, [], Expiration.never())

    def test_revoke_partial_and_full(self, alice):
        perms = merge_grant([], alice, [PermissionType.TRANSFER, PermissionType.VIEW_OWNER], Expiration.never())
        perms = remove_grant(perms, alice, [PermissionType.TRANSFER])
        assert len(perms) == 1
        assert not perms[0].grants(PermissionType.TRANSFER)
        perms = remove_grant(perms, alice, [PermissionType.VIEW_OWNER])
        assert perms == []

    def test_revoke_unknown_grantee_is_noop(self, alice, holder):
        perms = merge_grant([], alice, [PermissionType.TRANSFER], Expiration.never())
        assert remove_grant(perms, holder, [PermissionType.TRANSFER]) == perms

    def test_compact_drops_expired(self, alice, holder):
        perms = merge_grant([], alice, [PermissionType.TRANSFER], Expiration.at_height(10))
        perms = merge_grant(perms, alice, [PermissionType.VIEW_OWNER], Expiration.never())
        perms = merge_grant(perms, holder, [PermissionType.TRANSFER], Expiration.at_height(10))
        out = compact(perms, BlockInfo(height=10, time=0))
        assert len(out) == 1
        assert out[0].address == alice
        assert not out[0].grants(PermissionType.TRANSFER)
        assert out[0].grants(PermissionType.VIEW_OWNER)
        assert find_permission(out, holder) is None
        # input untouched
        assert len(perms) == 2

    def test_duplicate_entries_any_live_grant_counts(self, owner, alice, block):
        perms = [
            Permission(alice, [None, None, Expiration.at_height(1)]),
            Permission(alice, [None, None, Expiration.never()]),
        ]
        assert is_authorized(owner, perms, alice, PermissionType.TRANSFER, block)


def test_canonical_addr_equality():
    assert CanonicalAddr(b"a") == CanonicalAddr(bytearray(b"a"))
    assert CanonicalAddr.from_base64(CanonicalAddr(b"\x00\xff").to_base64()) == CanonicalAddr(b"\x00\xff")
