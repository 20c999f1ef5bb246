"""
Command-line entry point: ``securelink-server``.
"""

import argparse
import logging
import sys

import yaml
from aiohttp import web

from ..common.log import configure_logging
from ..core.config import Config
from .app import create_app


logger = logging.getLogger(__name__)


def parse_args(argv):
    parser = argparse.ArgumentParser(description="Secure delivery link server")
    parser.add_argument('--config', help='JSON or YAML configuration file')
    parser.add_argument('--host', help='Bind address (overrides configuration)')
    parser.add_argument('--port', type=int, help='Listen port (overrides configuration)')
    parser.add_argument('--data-dir', help='Directory for the file store (overrides configuration)')
    parser.add_argument('--log-level', help='Log level (overrides configuration)')
    return parser.parse_args(argv)


def build_config(args) -> Config:
    config = Config.load(args.config)
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.data_dir:
        config.store.root_dir = args.data_dir
    if args.log_level:
        config.log_level = args.log_level
    config.validate()
    return config


def main(argv=None):
    args = parse_args(sys.argv[1:] if argv is None else argv)

    try:
        config = build_config(args)
    except (ValueError, OSError, yaml.YAMLError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_logging(config.log_level, json_format=config.log_json)
    logger.info(f"Starting secure delivery server on {config.server.host}:{config.server.port}")

    web.run_app(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        print=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
