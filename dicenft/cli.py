#!/usr/bin/env python3
"""
dicenft command line

Usage:
    dicenft <command> [subcommand] [options]

Commands:
    colours      Generate the dice colour extension for a seed
    token        Check authorization against a stored token document
    collateral   Inspect the collateral state of a stored token
    metadata     Check a stored metadata document against the conventions
    config       Configuration management
"""

from __future__ import annotations

import argparse
import json
import sys
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

from dicenft import __version__
from dicenft.errors import DiceNftError


class OutputFormat(Enum):
    """Output format options."""
    JSON = "json"
    YAML = "yaml"


class CLIError(Exception):
    """CLI error with exit code."""
    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def format_output(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> str:
    """Format data for output."""
    if fmt == OutputFormat.YAML:
        import yaml
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=True)
    return json.dumps(data, indent=2, sort_keys=True, default=str)


def _block(args: argparse.Namespace):
    from dicenft.expiration import BlockInfo
    return BlockInfo(height=args.height, time=args.time)


class DiceNftCLI:
    """Main CLI application."""

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="dicenft",
            description="Token ownership, collateral and dice colour tooling",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument(
            "--version", "-V",
            action="version",
            version=f"dicenft {__version__}",
        )
        self.parser.add_argument(
            "--format", "-f",
            choices=["json", "yaml"],
            default="json",
            help="Output format (default: json)",
        )
        self.parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress error messages",
        )
        self.parser.add_argument(
            "--config", "-c",
            type=Path,
            help="Load configuration from this YAML file",
        )

        self.subparsers = self.parser.add_subparsers(dest="command", help="Commands")
        self._register_commands()

    def _register_commands(self) -> None:
        self._register_colours_command()
        self._register_token_commands()
        self._register_collateral_commands()
        self._register_metadata_commands()
        self._register_config_commands()

    def _register_colours_command(self) -> None:
        colours = self.subparsers.add_parser("colours", help="Generate dice colours from a seed")
        seed = colours.add_mutually_exclusive_group(required=True)
        seed.add_argument("--seed-hex", help="Seed as hex bytes")
        seed.add_argument("--seed-text", help="Seed as UTF-8 text")

    def _register_token_commands(self) -> None:
        token = self.subparsers.add_parser("token", help="Token document operations")
        token_sub = token.add_subparsers(dest="subcommand")

        authorize = token_sub.add_parser("authorize", help="Check whether a requester may perform an action")
        authorize.add_argument("file", type=Path, help="Token JSON document")
        authorize.add_argument("--requester", "-r", required=True, help="Requester address (base64)")
        authorize.add_argument("--action", "-a", required=True, help="Action name, e.g. transfer")
        authorize.add_argument("--height", type=int, required=True, help="Current block height")
        authorize.add_argument("--time", type=int, required=True, help="Current block time (seconds)")

    def _register_collateral_commands(self) -> None:
        collateral = self.subparsers.add_parser("collateral", help="Collateral inspection")
        collateral_sub = collateral.add_subparsers(dest="subcommand")

        state = collateral_sub.add_parser("state", help="Show the collateral lifecycle state")
        state.add_argument("file", type=Path, help="Token JSON document")
        state.add_argument("--collateral", type=Path, help="CollateralInfo JSON document")
        state.add_argument("--height", type=int, help="Current block height (with --time, reports redeemability)")
        state.add_argument("--time", type=int, help="Current block time (seconds)")

    def _register_metadata_commands(self) -> None:
        metadata = self.subparsers.add_parser("metadata", help="Metadata documents")
        metadata_sub = metadata.add_subparsers(dest="subcommand")

        check = metadata_sub.add_parser("check", help="Check metadata conventions")
        check.add_argument("file", type=Path, help="Metadata JSON document")

    def _register_config_commands(self) -> None:
        config = self.subparsers.add_parser("config", help="Configuration management")
        config_sub = config.add_subparsers(dest="subcommand")

        get = config_sub.add_parser("get", help="Get config value")
        get.add_argument("path", help="Config path (e.g., permissions.max_grantees)")

        config_sub.add_parser("show", help="Show all config")
        config_sub.add_parser("validate", help="Validate config")

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 0

        try:
            if parsed.config:
                from dicenft.config import get_config_manager
                get_config_manager().load_from_file(parsed.config)

            fmt = OutputFormat(parsed.format)
            result = self._dispatch(parsed)

            if result is not None:
                print(format_output(result, fmt))

            return 0

        except CLIError as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return e.exit_code

        except (DiceNftError, OSError, ValueError) as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return 1

    def _dispatch(self, args: argparse.Namespace) -> Any:
        """Dispatch command to handler."""
        cmd = args.command
        subcmd = getattr(args, "subcommand", None)

        handler_name = f"_handle_{cmd}_{subcmd}" if subcmd else f"_handle_{cmd}"
        handler = getattr(self, handler_name, None)

        if handler is None:
            raise CLIError(f"Unknown command: {cmd} {subcmd or ''}")

        return handler(args)

    # Colours
    def _handle_colours(self, args: argparse.Namespace) -> Any:
        from dicenft.metadata import Extension

        if args.seed_hex is not None:
            seed_hex = args.seed_hex[2:] if args.seed_hex.startswith("0x") else args.seed_hex
            try:
                seed = bytes.fromhex(seed_hex)
            except ValueError as e:
                raise CLIError(f"invalid --seed-hex: {e}", exit_code=2) from e
        else:
            seed = args.seed_text.encode("utf-8")
        return Extension.with_colours(seed).to_dict()

    # Token
    def _handle_token_authorize(self, args: argparse.Namespace) -> Any:
        from dicenft.documents import load_token
        from dicenft.errors import TokenError
        from dicenft.primitives import CanonicalAddr
        from dicenft.token import TokenAction, authorize

        actions = {a.value: a for a in TokenAction if not a.allowed_while_locked}
        action = actions.get(args.action)
        if action is None:
            names = ", ".join(actions)
            raise CLIError(f"unknown action {args.action!r}; expected one of {names}", exit_code=2)

        token = load_token(args.file)
        requester = CanonicalAddr.from_base64(args.requester, "requester")
        try:
            authorize(token, requester, action, _block(args), token_id=args.file.stem)
        except TokenError as e:
            return {"action": action.value, "allowed": False, "error_code": e.code, "reason": e.message}
        return {"action": action.value, "allowed": True}

    # Collateral
    def _handle_collateral_state(self, args: argparse.Namespace) -> Any:
        from dicenft.collateral import CollateralState, collateral_state
        from dicenft.documents import load_collateral, load_token

        token = load_token(args.file)
        info = load_collateral(args.collateral) if args.collateral else None
        state = collateral_state(token, info)
        result = {
            "collateralised": token.collateralised,
            "state": state.value,
            "collateral": info.to_dict() if info is not None else None,
        }
        if info is not None and args.height is not None and args.time is not None:
            result["redeemable"] = state == CollateralState.HELD and info.expiration.is_expired(_block(args))
        return result

    # Metadata
    def _handle_metadata_check(self, args: argparse.Namespace) -> Any:
        from dicenft.documents import load_metadata

        issues = load_metadata(args.file).validate()
        return {"valid": not issues, "issues": issues}

    # Config
    def _handle_config_get(self, args: argparse.Namespace) -> Any:
        from dicenft.config import get_config_manager
        return {"path": args.path, "value": get_config_manager().get(args.path)}

    def _handle_config_show(self, args: argparse.Namespace) -> Any:
        from dicenft.config import get_config_manager
        return get_config_manager().config.to_dict()

    def _handle_config_validate(self, args: argparse.Namespace) -> Any:
        from dicenft.config import get_config_manager
        errors = get_config_manager().validate()
        return {"valid": len(errors) == 0, "errors": errors}


def main() -> int:
    """CLI entry point."""
    cli = DiceNftCLI()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
