"""Command-line interface for Gmail OAuth Flow.

This module provides the main entry point for the CLI application.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import structlog
from pydantic import ValidationError

from gmail_oauth_flow import __version__
from gmail_oauth_flow.config import Settings, get_settings
from gmail_oauth_flow.exceptions import ConfigurationError, GmailOAuthError, MissingTokenError
from gmail_oauth_flow.oauth.flow import GmailOAuthFlow

logger = structlog.get_logger()

REVOKE_URL = "https://myaccount.google.com/permissions"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gmail-oauth", description="Gmail OAuth Flow")
    subparsers = parser.add_subparsers(dest="command", required=True)

    authorize_parser = subparsers.add_parser(
        "authorize",
        help="Run the OAuth consent flow and print a Gmail refresh token",
    )
    authorize_parser.add_argument(
        "--manual",
        action="store_true",
        help="Paste the redirect URL by hand instead of running a local listener",
    )
    authorize_parser.add_argument(
        "--credentials",
        type=Path,
        default=None,
        help="Client secrets JSON (default: settings credentials_path)",
    )
    authorize_parser.add_argument("--client-id", default=None, help="OAuth client ID")
    authorize_parser.add_argument("--client-secret", default=None, help="OAuth client secret")
    authorize_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for the browser redirect (default: settings timeout_seconds)",
    )
    authorize_parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Only print the authorization URL",
    )
    authorize_parser.add_argument(
        "--force-consent",
        action="store_true",
        help="Ask Google to show the consent screen again so a new refresh token is issued",
    )

    return parser


def _settings_for(args: argparse.Namespace, settings: Settings) -> Settings:
    overrides: dict[str, object] = {}
    if args.credentials is not None:
        overrides["credentials_path"] = args.credentials
    if args.client_id is not None:
        overrides["client_id"] = args.client_id
    if args.client_secret is not None:
        overrides["client_secret"] = args.client_secret
    if args.timeout is not None:
        overrides["timeout_seconds"] = args.timeout
    if args.no_browser:
        overrides["open_browser"] = False
    if args.force_consent:
        overrides["prompt"] = "consent"
    try:
        return Settings.model_validate({**settings.model_dump(), **overrides})
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid option: {exc}") from exc


def _cmd_authorize(args: argparse.Namespace) -> int:
    try:
        settings = _settings_for(args, get_settings())
        flow = GmailOAuthFlow(settings=settings)
        refresh_token = asyncio.run(flow.authorize(manual=args.manual))
    except MissingTokenError as exc:
        print(
            f"\n{exc}. Revoke previous access and try again:\n{REVOKE_URL}\n"
            "or re-run with --force-consent.",
            file=sys.stderr,
        )
        return 1
    except ConfigurationError as exc:
        print(f"\nConfiguration error: {exc}", file=sys.stderr)
        return 1
    except GmailOAuthError as exc:
        print(f"\nAuthorization failed: {exc}", file=sys.stderr)
        return 1

    print("\nAdd this to your .env:\n")
    print(f"GMAIL_REFRESH_TOKEN={refresh_token}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the Gmail OAuth Flow CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()

    # Configure logging
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )

    logger.debug("gmail_oauth_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    if parsed.command == "authorize":
        return _cmd_authorize(parsed)

    logger.error("unknown_command", command=parsed.command)
    return 2


if __name__ == "__main__":
    sys.exit(main())
