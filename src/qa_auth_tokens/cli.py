"""
Token Lifecycle CLI

Usage:
    qa-auth-tokens check                  # validity of every role snapshot
    qa-auth-tokens check --role admin
    qa-auth-tokens generate               # regenerate stale snapshots
    qa-auth-tokens bearer --role admin    # print the bearer token
"""

import argparse
import asyncio
import logging
import sys

from .browser import BearerResolver, PlaywrightDriver, TokenProvisioner
from .config import DEFAULT_ROLE, Settings
from .exceptions import TokenLifecycleError
from .storage import SnapshotStore
from .tokens import TokenValidator

logger = logging.getLogger(__name__)


def _roles(args: argparse.Namespace, settings: Settings) -> list[str]:
    return args.role or [identity.name for identity in settings.identities()]


def cmd_check(args: argparse.Namespace, settings: Settings) -> int:
    validator = TokenValidator(SnapshotStore(settings.storage_dir))
    invalid = 0
    for role in _roles(args, settings):
        valid = validator.validate(role)
        print(f"{role:<20} {'valid' if valid else 'INVALID'}")
        if not valid:
            invalid += 1
    return 1 if invalid else 0


async def _generate(args: argparse.Namespace, settings: Settings) -> int:
    roles = _roles(args, settings)
    provisioner = TokenProvisioner(
        settings,
        PlaywrightDriver(settings),
        identities=[settings.identity(role) for role in roles],
    )
    # Valid snapshots are skipped inside the pass
    await provisioner.regenerate_all()

    failed = 0
    for role in roles:
        valid = provisioner.validator.validate(role)
        identity = settings.identity(role)
        if valid:
            status = "valid"
        elif not identity.has_credentials:
            status = "skipped (no credentials)"
        else:
            status = "FAILED"
            failed += 1
        print(f"{role:<20} {status}")
    return 1 if failed else 0


async def _bearer(args: argparse.Namespace, settings: Settings) -> int:
    driver = PlaywrightDriver(settings)
    resolver = BearerResolver(settings, driver, TokenProvisioner(settings, driver))
    role = args.role[0] if args.role else DEFAULT_ROLE
    print(await resolver.get_bearer_token(role, args.base_url))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qa-auth-tokens",
        description="Validate and regenerate per-role bearer token snapshots",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("check", "Report which role snapshots hold a usable token"),
        ("generate", "Regenerate missing or expired snapshots via browser login"),
        ("bearer", "Print the bearer token of a role"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument(
            "--role",
            action="append",
            help="Role to act on (repeatable, default: all roles)",
        )
        if name == "bearer":
            cmd.add_argument("--base-url", default=None, help="Override BASE_URL")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    settings = Settings()

    try:
        if args.command == "check":
            return cmd_check(args, settings)
        if args.command == "generate":
            return asyncio.run(_generate(args, settings))
        return asyncio.run(_bearer(args, settings))
    except TokenLifecycleError as e:
        logger.error(str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
