"""
Main entry point for the plain-text Language Server.

The server talks JSON-RPC to the editor over stdin/stdout by default,
or over TCP / WebSocket when asked to.
"""
import argparse
import os
import sys

from plainls import __version__
from plainls.lsp.server import create_server


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="plainls", description="Language server for plain-text documents"
    )
    parser.add_argument("--version", action="version", version=__version__)
    transport = parser.add_mutually_exclusive_group()
    transport.add_argument("--tcp", action="store_true", help="Serve over TCP")
    transport.add_argument("--ws", action="store_true", help="Serve over WebSocket")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=2087, help="Bind port (default: 2087)")
    return parser


def main(argv: list[str] | None = None):
    """Start the language server."""
    args = build_parser().parse_args(argv)

    # Check if we're in debug mode
    if os.getenv("DEBUG"):
        print("🔧 plainls starting in DEBUG mode", file=sys.stderr)
        print("📡 Waiting for debugger to attach on port 5678...", file=sys.stderr)
        try:
            import debugpy  # type: ignore
            debugpy.listen(("127.0.0.1", 5678))
            debugpy.wait_for_client()
            print("🎯 Debugger attached! Continuing...", file=sys.stderr)
        except ImportError:
            print("❌ debugpy not available - install with: pip install plainls[dev]", file=sys.stderr)

    server = create_server()

    if args.tcp:
        server.start_tcp(args.host, args.port)
    elif args.ws:
        server.start_ws(args.host, args.port)
    else:
        server.start_io()


if __name__ == "__main__":
    main()
