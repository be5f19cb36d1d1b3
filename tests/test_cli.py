"""Command line tests."""

import json

import pytest
import yaml

from dicenft.cli import DiceNftCLI
from dicenft.collateral import CollateralInfo
from dicenft.expiration import Expiration
from dicenft.metadata import Extension
from dicenft.permissions import PermissionType
from dicenft.primitives import Coin
from dicenft.token import Token, grant


def _run(capsys, *argv):
    code = DiceNftCLI().run(list(argv))
    out, err = capsys.readouterr()
    return code, out, err


@pytest.fixture
def token_file(tmp_path, token, owner, alice, block):
    granted = grant(token, owner, alice, [PermissionType.TRANSFER], block)
    path = tmp_path / "dice-1.json"
    path.write_text(json.dumps(granted.to_dict()), encoding="utf-8")
    return path


class TestColoursCommand:

    def test_seed_text(self, capsys):
        code, out, _ = _run(capsys, "colours", "--seed-text", "player-1")
        assert code == 0
        assert json.loads(out) == Extension.with_colours(b"player-1").to_dict()

    def test_seed_hex_yaml(self, capsys):
        code, out, _ = _run(capsys, "--format", "yaml", "colours", "--seed-hex", "0x00ff")
        assert code == 0
        assert yaml.safe_load(out) == Extension.with_colours(b"\x00\xff").to_dict()

    def test_bad_hex(self, capsys):
        code, _, err = _run(capsys, "colours", "--seed-hex", "zz")
        assert code == 2
        assert "invalid --seed-hex" in err


class TestTokenCommand:

    def test_grantee_allowed(self, capsys, token_file, alice):
        code, out, _ = _run(
            capsys, "token", "authorize", str(token_file),
            "--requester", alice.to_base64(), "--action", "transfer", "--height", "1", "--time", "1",
        )
        assert code == 0
        assert json.loads(out) == {"action": "transfer", "allowed": True}

    def test_stranger_denied(self, capsys, token_file, holder):
        code, out, _ = _run(
            capsys, "token", "authorize", str(token_file),
            "--requester", holder.to_base64(), "--action", "view_owner", "--height", "1", "--time", "1",
        )
        result = json.loads(out)
        assert code == 0
        assert result["allowed"] is False
        assert result["error_code"] == "unauthorized"

    def test_locked(self, capsys, tmp_path, owner):
        path = tmp_path / "locked.json"
        path.write_text(json.dumps(Token(owner=owner, collateralised=True).to_dict()), encoding="utf-8")
        code, out, _ = _run(
            capsys, "token", "authorize", str(path),
            "--requester", owner.to_base64(), "--action", "transfer", "--height", "1", "--time", "1",
        )
        assert code == 0
        assert json.loads(out)["error_code"] == "token_locked"

    def test_unknown_action(self, capsys, token_file, owner):
        code, _, err = _run(
            capsys, "token", "authorize", str(token_file),
            "--requester", owner.to_base64(), "--action", "redeem", "--height", "1", "--time", "1",
        )
        assert code == 2
        assert "unknown action" in err

    def test_invalid_document(self, capsys, tmp_path, owner):
        path = tmp_path / "broken.json"
        path.write_text(json.dumps({"owner": owner.to_base64()}), encoding="utf-8")
        code, _, err = _run(
            capsys, "token", "authorize", str(path),
            "--requester", owner.to_base64(), "--action", "transfer", "--height", "1", "--time", "1",
        )
        assert code == 1
        assert "Error:" in err


class TestCollateralCommand:

    def test_held_and_redeemable(self, capsys, tmp_path, owner, holder):
        token_path = tmp_path / "token.json"
        token_path.write_text(json.dumps(Token(owner=owner, collateralised=True).to_dict()), encoding="utf-8")
        info = CollateralInfo(Coin("uscrt", 10), Coin("uscrt", 12), Expiration.at_height(100), holder)
        info_path = tmp_path / "collateral.json"
        info_path.write_text(json.dumps(info.to_dict()), encoding="utf-8")

        code, out, _ = _run(
            capsys, "collateral", "state", str(token_path), "--collateral", str(info_path),
            "--height", "100", "--time", "0",
        )
        result = json.loads(out)
        assert code == 0
        assert result["state"] == "held"
        assert result["redeemable"] is True

    def test_stale_record_not_redeemable(self, capsys, tmp_path, owner, holder, token_file):
        info = CollateralInfo(Coin("uscrt", 10), Coin("uscrt", 12), Expiration.at_height(100), holder)
        info_path = tmp_path / "stale.json"
        info_path.write_text(json.dumps(info.to_dict()), encoding="utf-8")

        code, out, _ = _run(
            capsys, "collateral", "state", str(token_file), "--collateral", str(info_path),
            "--height", "500", "--time", "0",
        )
        result = json.loads(out)
        assert code == 0
        assert result["state"] == "unpledged"
        assert result["redeemable"] is False

    def test_unpledged(self, capsys, token_file):
        code, out, _ = _run(capsys, "collateral", "state", str(token_file))
        assert code == 0
        assert json.loads(out) == {"collateralised": False, "state": "unpledged", "collateral": None}


class TestMetadataCommand:

    def test_check_reports_issues(self, capsys, tmp_path):
        path = tmp_path / "meta.json"
        path.write_text(json.dumps({"token_uri": "ftp://x", "extension": None}), encoding="utf-8")
        code, out, _ = _run(capsys, "metadata", "check", str(path))
        result = json.loads(out)
        assert code == 0
        assert result["valid"] is False
        assert result["issues"][0].startswith("token_uri")


class TestConfigCommand:

    def test_show(self, capsys):
        code, out, _ = _run(capsys, "config", "show")
        assert code == 0
        assert json.loads(out)["permissions"]["max_grantees"] == 64

    def test_get_with_config_file(self, capsys, tmp_path):
        path = tmp_path / "dicenft.yaml"
        path.write_text("permissions:\n  max_grantees: 12\n", encoding="utf-8")
        code, out, _ = _run(capsys, "--config", str(path), "config", "get", "permissions.max_grantees")
        assert code == 0
        assert json.loads(out) == {"path": "permissions.max_grantees", "value": 12}

    def test_validate(self, capsys):
        code, out, _ = _run(capsys, "config", "validate")
        assert code == 0
        assert json.loads(out) == {"valid": True, "errors": []}

    def test_no_command_prints_help(self, capsys):
        code, out, _ = _run(capsys)
        assert code == 0
        assert "usage: dicenft" in out
