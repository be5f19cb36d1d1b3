"""Expiration gate tests."""

import pytest

from dicenft.errors import DecodeError
from dicenft.expiration import BlockInfo, Expiration, ExpirationKind, is_expired


class TestExpirationGate:

    def test_never_does_not_expire(self):
        assert not Expiration.never().is_expired(BlockInfo(height=10 ** 12, time=10 ** 12))

    @pytest.mark.parametrize("height,expired", [(99, False), (100, True), (101, True)])
    def test_height_boundary(self, height, expired):
        assert Expiration.at_height(100).is_expired(BlockInfo(height=height, time=0)) is expired

    @pytest.mark.parametrize("time,expired", [(1999, False), (2000, True), (2001, True)])
    def test_time_boundary(self, time, expired):
        assert Expiration.at_time(2000).is_expired(BlockInfo(height=0, time=time)) is expired

    def test_height_ignores_time_and_vice_versa(self):
        block = BlockInfo(height=5, time=5000)
        assert not Expiration.at_height(6).is_expired(block)
        assert Expiration.at_time(5000).is_expired(block)

    def test_optional_helper(self):
        block = BlockInfo(height=1, time=1)
        assert not is_expired(None, block)
        assert is_expired(Expiration.at_height(1), block)

    def test_default_is_never(self):
        assert Expiration() == Expiration.never()
        assert Expiration().kind == ExpirationKind.NEVER

    def test_invalid_values_rejected(self):
        with pytest.raises(ValueError):
            Expiration.at_height(-1)
        with pytest.raises(ValueError):
            Expiration(ExpirationKind.NEVER, 5)
        with pytest.raises(ValueError):
            Expiration.at_time(True)


class TestExpirationWire:

    def test_wire_forms(self):
        assert Expiration.never().to_dict() == "never"
        assert Expiration.at_height(7).to_dict() == {"at_height": 7}
        assert Expiration.at_time(9).to_dict() == {"at_time": 9}

    @pytest.mark.parametrize("exp", [Expiration.never(), Expiration.at_height(0), Expiration.at_time(1_700_000_000)])
    def test_round_trip(self, exp):
        assert Expiration.from_dict(exp.to_dict()) == exp

    @pytest.mark.parametrize("bad", ["soon", {"at_block": 1}, {"at_height": "1"}, {"at_height": 1, "at_time": 2}, None, {"never": None}])
    def test_malformed_rejected(self, bad):
        with pytest.raises(DecodeError):
            Expiration.from_dict(bad)
