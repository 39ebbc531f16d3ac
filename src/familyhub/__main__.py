# Main Entry Point - FamilyHub Vault API
#
# Starts the vault API server. Storage backend and PIN policy come from
# the environment (see core/config.py); --generate-key prints a fresh
# FAMILYHUB_VAULT_KEY for the local SQLite backend.

import argparse
import sys

from . import __version__
from .core import EventSeverity, EventType, get_settings, log_security_event


def main(argv=None):
    """Main entry point for the FamilyHub vault server."""
    parser = argparse.ArgumentParser(
        description="FamilyHub - PIN-gated secure vault API",
    )

    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Backend host (default: 127.0.0.1)"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Backend port (default: 8000)"
    )

    parser.add_argument(
        "--generate-key",
        action="store_true",
        help="Print a new base64 FAMILYHUB_VAULT_KEY for the sqlite backend and exit"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"FamilyHub Vault v{__version__}"
    )

    args = parser.parse_args(argv)

    if args.generate_key:
        from .vault import EncryptionService
        print(EncryptionService.encode_for_storage(EncryptionService.generate_key()))
        return 0

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    print("=" * 60)
    print(f"  FamilyHub Vault v{__version__}")
    print(f"  Backend: {settings.backend}")
    print(f"  Starting API server on {args.host}:{args.port}...")
    print("  Press Ctrl+C to stop")
    print("=" * 60)

    from .api.main import start_api_server

    try:
        start_api_server(host=args.host, port=args.port, settings=settings)
    except KeyboardInterrupt:
        print("\n\nShutting down backend...")
    except Exception as e:
        print(f"\n\nError: {str(e)}", file=sys.stderr)
        log_security_event(
            EventType.SYSTEM_STOP,
            EventSeverity.CRITICAL,
            f"FamilyHub vault API crashed: {type(e).__name__}",
        )
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
