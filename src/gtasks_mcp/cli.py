"""CLI for gtasks-mcp - server startup and credential management.

Usage:
    gtasks-mcp                          # Run the MCP server on stdio
    gtasks-mcp serve                    # Same as above
    gtasks-mcp login [--no-browser]     # Interactive OAuth consent
    gtasks-mcp status [--check]         # Show credential status
    gtasks-mcp import <path>            # Import OAuth client credentials
    gtasks-mcp revoke                   # Revoke the grant and delete token.json

Everything except ``serve`` prints to stdout; ``serve`` keeps stdout for MCP.
"""

from __future__ import annotations

import argparse
import json
import shutil
import sys
from pathlib import Path

from gtasks_mcp.config import ServerConfig, configure_logging


def cmd_serve(config: ServerConfig) -> int:
    """Run the MCP server."""
    from gtasks_mcp.server import serve

    return serve(config)


def cmd_login(config: ServerConfig, no_browser: bool = False) -> int:
    """Interactive Google OAuth login."""
    from gtasks_mcp.google import AuthorizationError, GoogleAuthorizer

    print("=" * 60)
    print("GTASKS-MCP GOOGLE LOGIN")
    print("=" * 60)

    if no_browser:
        config.open_browser = False

    authorizer = GoogleAuthorizer(config)
    record = authorizer.store.load()
    if record is not None and record.is_usable:
        print("\nAlready authorized (token.json has a refresh token)")
        return cmd_status(config)

    print(f"\nScopes: {', '.join(config.scopes)}")
    print("A browser window will open for Google consent.\n")

    try:
        authorizer.authorize()
    except AuthorizationError as e:
        print(f"\nError: {e}")
        if not config.credentials_path.exists():
            print("Run 'gtasks-mcp import <path>' to add OAuth client credentials")
        return 1

    saved = authorizer.store.load()
    if saved is None or not saved.is_usable:
        print("\nAuthorized, but the token could not be saved; see the log above")
        return 1

    print("\nToken saved successfully!")
    return cmd_status(config)


def cmd_status(config: ServerConfig, check: bool = False) -> int:
    """Show credential status, optionally refreshing the access token."""
    from gtasks_mcp.google import GoogleAuthorizer, TokenError

    status = config.get_status()

    print("=" * 60)
    print("GTASKS-MCP CREDENTIAL STATUS")
    print("=" * 60)
    print()
    print(f"credentials.json: {'[x]' if status['credentials'] else '[ ]'}")
    print(f"  {status['credentials_path']}")
    print(f"token.json:       {'[x]' if status['token'] else '[ ]'}")
    print(f"  {status['token_path']}")
    print(f"max results:      {status['max_results']}")
    print()

    authorizer = GoogleAuthorizer(config)
    record = authorizer.store.load()
    if record is None:
        print("No token found - run 'gtasks-mcp login'")
        return 1
    if not record.is_usable:
        print("Token is incomplete - run 'gtasks-mcp login'")
        return 1

    print(f"Client ID     : {record.client_id[:40]}...")
    print("Refresh token : present")

    # A usable saved token means authorize() takes the fast path and never prompts
    client = authorizer.authorize()
    if check:
        try:
            client.get_access_token()
        except TokenError as e:
            print(f"\nToken check failed: {e}")
            print("Run 'gtasks-mcp login' to authorize again")
            return 1

    info = client.get_token_info()
    print(f"Status        : {info['status']}")
    print(f"Scopes        : {', '.join(info['scopes'])}")
    print(f"Expires in    : {info['expires_in']}")
    print(f"Refreshed     : {info['last_refresh'] or 'never'}")
    return 0


def cmd_import(config: ServerConfig, source_path: str) -> int:
    """Import OAuth credentials from a file."""
    from gtasks_mcp.google import AppCredentials, CredentialStoreError

    source = Path(source_path).expanduser()

    if not source.exists():
        print(f"Error: File not found: {source}")
        return 1

    # Validate JSON format
    try:
        with open(source, encoding="utf-8") as f:
            data = json.load(f)
        app = AppCredentials.from_dict(data, source=str(source))
    except ValueError as e:
        print(f"Error: Invalid JSON: {e}")
        return 1
    except CredentialStoreError as e:
        print(f"Error: {e}")
        return 1

    config.credentials_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, config.credentials_path)

    print("Imported OAuth credentials")
    print(f"  From: {source}")
    print(f"  To:   {config.credentials_path}")
    print(f"  Type: {app.type}")
    print(f"  Client ID: {app.client_id[:40]}...")
    print()
    print("Next: Run 'gtasks-mcp login' to authorize")
    return 0


def cmd_revoke(config: ServerConfig) -> int:
    """Revoke Google OAuth token."""
    from gtasks_mcp.google import AuthorizedClient, CredentialStore, CredentialStoreError

    store = CredentialStore(config.token_path, config.credentials_path)
    record = store.load()
    if record is None:
        print("No token to revoke")
        return 0

    if record.is_usable:
        client = AuthorizedClient(record, scopes=config.scopes)
        if not client.revoke():
            print("Remote revocation failed; deleting the local token anyway")

    try:
        store.delete()
    except CredentialStoreError as e:
        print(f"Error: {e}")
        return 1

    print("Token revoked and local token deleted")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="gtasks-mcp",
        description="Google Tasks MCP server",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command")

    subparsers.add_parser("serve", help="Run the MCP server on stdio (default)")

    login_parser = subparsers.add_parser("login", help="Interactive OAuth login")
    login_parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Don't open browser automatically",
    )

    status_parser = subparsers.add_parser("status", help="Show credential status")
    status_parser.add_argument(
        "--check",
        action="store_true",
        help="Refresh the access token to verify the saved grant",
    )

    import_parser = subparsers.add_parser("import", help="Import OAuth credentials")
    import_parser.add_argument("path", help="Path to credentials.json file")

    subparsers.add_parser("revoke", help="Revoke the grant and delete the token")

    args = parser.parse_args(sys.argv[1:] if argv is None else argv)

    config = ServerConfig.from_env()
    configure_logging(config.log_level)

    if args.command in (None, "serve"):
        return cmd_serve(config)

    if args.command == "login":
        return cmd_login(config, args.no_browser)

    if args.command == "status":
        return cmd_status(config, args.check)

    if args.command == "import":
        return cmd_import(config, args.path)

    if args.command == "revoke":
        return cmd_revoke(config)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
