#!/usr/bin/env python3
"""Main entry point: serve an MCPServer defined in any importable module."""

import argparse
import importlib
import json
import os
import sys
from typing import Optional
import structlog
from structlog.contextvars import clear_contextvars

from mcp_stdio.config import load_config, create_sample_config
from mcp_stdio.logs import setup_logging
from mcp_stdio.protocol.server import MCPServer


def load_app(target: str) -> MCPServer:
    """Resolve ``module:attribute`` to an MCPServer instance.

    The attribute may also be a zero-argument factory returning the server.
    """
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Expected 'module:attribute', got {target!r}")

    module = importlib.import_module(module_name)
    try:
        app = getattr(module, attribute)
    except AttributeError:
        raise ValueError(f"Module {module_name!r} has no attribute {attribute!r}")

    if callable(app) and not isinstance(app, MCPServer):
        app = app()
    if not isinstance(app, MCPServer):
        raise ValueError(f"{target!r} is not an MCPServer (got {type(app).__name__})")
    return app


def run_server(target: str, config_file: Optional[str] = None) -> None:
    """Run the MCP server on stdio."""
    # Load configuration
    config = load_config(config_file)

    # Setup logging
    setup_logging(config.log_level, config.debug)
    logger = structlog.get_logger()

    logger.info("Starting MCP server", app=target)

    try:
        server = load_app(target)
        if config_file:
            server.apply_config(config)
        server.run()

    except Exception as e:
        logger.error("Server error", error=str(e), exc_info=True)
        sys.exit(1)
    finally:
        clear_contextvars()
        logger.info("MCP server exited")


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="MCP stdio server runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the example server on stdio
  python main.py --app example_usage:server

  # Run with custom config file
  python main.py --app example_usage:server --config config.json

  # Generate sample config
  python main.py --sample-config

  # Paginate list results
  MCP_PAGE_SIZE=10 python main.py --app example_usage:server
"""
    )

    parser.add_argument(
        "--app",
        "-a",
        help="Server to serve, as 'module:attribute'"
    )
    parser.add_argument(
        "--config",
        "-c",
        help="Configuration file path (JSON format)"
    )
    parser.add_argument(
        "--sample-config",
        action="store_true",
        help="Generate sample configuration and exit"
    )
    parser.add_argument(
        "--validate-config",
        action="store_true",
        help="Validate configuration and exit"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    if args.sample_config:
        # Generate sample configuration
        sample_config = create_sample_config()
        print(json.dumps(sample_config, indent=2))
        return

    if args.validate_config:
        # Validate configuration
        try:
            config = load_config(args.config)
            print("Configuration is valid")
            print(json.dumps(config.to_dict(), indent=2))
        except Exception as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            sys.exit(1)
        return

    if not args.app:
        parser.error("--app is required to serve")

    # Set debug from command line if specified
    if args.debug:
        os.environ["MCP_DEBUG"] = "true"
        os.environ["MCP_LOG_LEVEL"] = "debug"

    run_server(args.app, args.config)


if __name__ == "__main__":
    main()
