"""
loopauth CLI entry point.

Commands:
    loopauth login  [--provider google] [--scope URL ...] [--port 1456]
    loopauth token  [--provider google] [--json]
    loopauth status [--provider google]
    loopauth logout [--provider google]

Client ID / secret default to GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET from
the environment or .env file.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from loopauth import __version__
from loopauth.core.config import settings
from loopauth.environments import PROVIDER_CLIENTS, get_provider_client
from loopauth.environments.base import AuthError
from loopauth.services.credential_store import CredentialStore, SQLCredentialStore
from loopauth.services.login_flow import LoginFlow
from loopauth.services.token_accessor import TokenAccessor


logger = logging.getLogger("loopauth.cli")


# ============== Commands ==============

def cmd_login(args: argparse.Namespace, store: CredentialStore) -> int:
    """Run the interactive browser login and store the credential."""
    client = get_provider_client(args.provider, args.client_id, args.client_secret)
    flow = LoginFlow(
        client,
        store,
        scopes=args.scope or settings.GOOGLE_SCOPES,
        port=args.port,
    )
    credential = asyncio.run(flow.run())

    who = f" as {credential.account_id}" if credential.account_id else ""
    print(f"\nLogged in to {args.provider.title()}{who}.")
    return 0


def cmd_token(args: argparse.Namespace, store: CredentialStore) -> int:
    """Print a valid access token (refreshing it if needed)."""
    accessor = TokenAccessor(store=store)
    token = asyncio.run(accessor.get_token(args.provider, args.client_id, args.client_secret))
    if args.json:
        print(json.dumps(accessor.get_token_json(args.provider), indent=2))
    else:
        print(token)
    return 0


def cmd_status(args: argparse.Namespace, store: CredentialStore) -> int:
    """Show whether a credential is stored, without printing any secret."""
    info = TokenAccessor(store=store).status(args.provider)
    if not info["logged_in"]:
        print(f"Not logged in to {args.provider.title()}.")
        return 1

    print(f"Provider:      {info['provider']}")
    print(f"Account:       {info['account_id'] or '-'}")
    print(f"Expires at:    {info['expires_at'] or 'never'}")
    print(f"Expired:       {'yes' if info['expired'] else 'no'}")
    print(f"Refresh token: {'yes' if info['has_refresh_token'] else 'no'}")
    return 0


def cmd_logout(args: argparse.Namespace, store: CredentialStore) -> int:
    """Revoke (best effort) and delete the stored credential."""
    accessor = TokenAccessor(store=store)
    revoked = asyncio.run(accessor.logout(args.provider, args.client_id, args.client_secret))
    if revoked:
        print(f"Logged out of {args.provider.title()}.")
    else:
        print(f"Removed local {args.provider.title()} credential (token revocation failed).")
    return 0


COMMANDS = {
    "login": cmd_login,
    "token": cmd_token,
    "status": cmd_status,
    "logout": cmd_logout,
}


# ============== Main ==============

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=settings.APP_NAME,
        description="OAuth2 loopback login and token access for local tools.",
    )
    parser.add_argument("--version", "-v", action="version", version=f"{settings.APP_NAME} {__version__}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--provider",
        default="google",
        choices=sorted(PROVIDER_CLIENTS),
        help="OAuth provider (default: google)",
    )
    common.add_argument("--client-id", default=None, help="OAuth client ID")
    common.add_argument("--client-secret", default=None, help="OAuth client secret")

    subparsers = parser.add_subparsers(dest="command", required=True)

    login = subparsers.add_parser("login", parents=[common], help="Log in via the browser")
    login.add_argument(
        "--scope",
        action="append",
        default=None,
        help="Scope to request (repeatable; default: configured scopes)",
    )
    login.add_argument("--port", type=int, default=None, help="Loopback callback port")

    token = subparsers.add_parser("token", parents=[common], help="Print a valid access token")
    token.add_argument("--json", action="store_true", help="Print the full token object")

    subparsers.add_parser("status", parents=[common], help="Show stored credential info")
    subparsers.add_parser("logout", parents=[common], help="Revoke and delete the credential")

    return parser


def main(argv: Optional[List[str]] = None, store: Optional[CredentialStore] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        store = store if store is not None else SQLCredentialStore()
        return COMMANDS[args.command](args, store)
    except AuthError as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
