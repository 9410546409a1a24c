"""
mcsrv-status command line.

Commands:
- status: Check the live status of a Java or Bedrock server
- motd: Render, convert and measure formatted MOTD text
- config: Show, create or validate a JSON configuration file
- self-test: Validate configuration and upstream connectivity
"""

import argparse
import asyncio
import json
import sys
from dataclasses import asdict, fields, replace
from pathlib import Path
from typing import Optional

from . import __version__
from . import motd_formatter
from .audit_logger import AuditLogger
from .config import (
    CacheConfig,
    CircuitBreakerConfig,
    LoggingConfig,
    RateLimitConfig,
    RetryConfig,
    ServerConfig,
    SystemConfig,
    TurnstileConfig,
    load_config_from_env,
)
from .enums import MotdDialect
from .exceptions import InvalidColorFormat
from .models import StatusRequest
from .pipeline import StatusPipeline
from .self_test import SelfTest, run_self_test


DEFAULT_CONFIG_PATH = Path.home() / ".mcsrv_status" / "config.json"

_SECTIONS = {
    "rate_limits": RateLimitConfig,
    "cache": CacheConfig,
    "turnstile": TurnstileConfig,
    "retry": RetryConfig,
    "circuit_breaker": CircuitBreakerConfig,
    "server": ServerConfig,
    "logging": LoggingConfig,
}


def _build_section(cls, data: dict):
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Read a SystemConfig from JSON.

    Missing sections and keys keep their defaults, unknown ones are ignored.
    Returns None if the file does not exist or cannot be parsed.
    """
    path = Path(config_path)
    if not path.is_file():
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return SystemConfig(
            **{name: _build_section(cls, data.get(name) or {}) for name, cls in _SECTIONS.items()},
            simulation_mode=bool(data.get("simulation_mode", False)),
            startup_self_test=bool(data.get("startup_self_test", False)),
        )
    except (json.JSONDecodeError, AttributeError, TypeError) as e:
        print(f"Invalid config file {path}: {e}", file=sys.stderr)
        return None


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """Write ``config`` as indented JSON, creating parent directories."""
    path = Path(config_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(asdict(config), indent=2, ensure_ascii=False), encoding="utf-8")
    except (OSError, TypeError) as e:
        print(f"Could not write config to {path}: {e}", file=sys.stderr)
        return False
    return True


def _resolve_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    """Config from ``--config`` when given, else from the environment."""
    if not getattr(args, "config", None):
        return load_config_from_env()

    config = load_config_from_file(Path(args.config))
    if config is None:
        print(f"Error: no usable config at {args.config}", file=sys.stderr)
    return config


def _create_logger(config: SystemConfig, verbose: bool = False) -> AuditLogger:
    logging_config = config.logging
    if verbose:
        logging_config = replace(logging_config, level="debug")
    return AuditLogger.from_config(logging_config)


def _print_status(body: dict) -> None:
    server = body["server"]
    state = "online" if server["online"] else "offline"
    print(f"{server['hostname']}:{server['port']} is {state}")
    if body.get("cached"):
        print("  (served from cache)")
    if server.get("version"):
        print(f"  Version:  {server['version']} (protocol {server.get('protocol')})")
    if server.get("software"):
        print(f"  Software: {server['software']}")
    if body.get("players"):
        players = body["players"]
        print(f"  Players:  {players['online']}/{players['max']}")
        if players.get("list"):
            print(f"            {', '.join(players['list'])}")
    if body.get("motd"):
        for line in body["motd"]["clean"]:
            print(f"  | {line}")
    ping = body["performance"].get("ping")
    if ping is not None:
        print(f"  Ping:     {ping:.0f}ms")


async def check_server_status(
    hostname: str,
    port: Optional[int],
    is_bedrock: bool,
    config: SystemConfig,
    as_json: bool = False,
    verbose: bool = False,
) -> int:
    """
    Check one server through the status pipeline and print the result.

    Returns:
        Exit code (0 on a successful check, 1 otherwise)
    """
    logger = _create_logger(config, verbose)

    if config.startup_self_test:
        report = await run_self_test(config, print_output=False, logger=logger)
        if not report.success:
            SelfTest(config).print_results(report)
            return 1

    async with StatusPipeline(config, logger=logger) as pipeline:
        result = await pipeline.check_server(StatusRequest(
            hostname=hostname,
            port=port,
            is_bedrock=is_bedrock,
            client_ip="cli",
        ))

    if as_json:
        print(json.dumps(
            {"status_code": result.status_code, **result.body},
            indent=2,
            ensure_ascii=False,
        ))
    elif result.success:
        _print_status(result.body)
    else:
        print(f"{result.body.get('error')}: {result.body.get('message')}")

    return 0 if result.success else 1


def cmd_status(args: argparse.Namespace) -> int:
    """Handle the 'status' command."""
    config = _resolve_config(args)
    if config is None:
        return 1

    # No browser widget on the command line, so there is no token to verify.
    config = replace(
        config,
        turnstile=replace(config.turnstile, enabled=False),
        simulation_mode=config.simulation_mode or args.dry_run,
    )

    return asyncio.run(check_server_status(
        hostname=args.hostname,
        port=args.port,
        is_bedrock=args.bedrock,
        config=config,
        as_json=args.json,
        verbose=args.verbose,
    ))


def cmd_motd(args: argparse.Namespace) -> int:
    """Handle the 'motd' command."""
    text = args.text

    if args.action == "render":
        print(motd_formatter.parse_to_html(text))
    elif args.action == "convert":
        print(motd_formatter.convert_to_format(text, args.format))
    elif args.action == "gradient":
        try:
            print(motd_formatter.generate_gradient(text, args.start, args.end))
        except InvalidColorFormat as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
    elif args.action == "center":
        print(motd_formatter.center_text(text, args.width))
    elif args.action == "length":
        print(motd_formatter.get_visible_length(text))
    elif args.action == "strip":
        print(motd_formatter.strip_formatting(text))
    elif args.action == "encode":
        print(motd_formatter.encode_for_url(text))
    elif args.action == "decode":
        print(motd_formatter.decode_from_url(text))
    elif args.action == "validate":
        result = motd_formatter.validate_motd(text, args.width)
        length_result = motd_formatter.validate_motd_length(text)
        errors = result.errors + length_result.errors
        for error in errors:
            print(f"  ✗ {error}")
        for warning in length_result.warnings:
            print(f"  ! {warning}")
        if not errors:
            print("  ✓ MOTD looks good")
        return 0 if not errors else 1

    return 0


def cmd_self_test(args: argparse.Namespace) -> int:
    """Handle the 'self-test' command."""
    config = _resolve_config(args)
    if config is None:
        return 1

    report = asyncio.run(run_self_test(config=config, print_output=True))
    return 0 if report.success else 1


def _config_show(path: Path, args: argparse.Namespace) -> int:
    config = load_config_from_file(path)
    if config is None:
        print(f"No configuration at {path} (create one with 'config init').")
        return 1

    on_off = {True: "on", False: "off"}
    print(f"Configuration from: {path}")
    print(f"  Cooldown:             {config.rate_limits.cooldown_seconds}s per hostname")
    print(f"  Requests per minute:  {config.rate_limits.requests_per_minute} per IP")
    print(f"  Cache:                {on_off[config.cache.enabled]} ({config.cache.duration_seconds}s)")
    print(f"  Turnstile:            {on_off[config.turnstile.enabled]}")
    print(f"  Circuit breaker:      {on_off[config.circuit_breaker.enabled]}")
    print(f"  Status API:           {config.server.status_api_url}")
    print(f"  Fallback API:         {config.server.fallback_api_url}")
    print(f"  Query timeout:        {config.server.query_timeout_ms}ms")
    print(f"  Simulation mode:      {on_off[config.simulation_mode]}")
    print(f"  Log level:            {config.logging.level} ({config.logging.output_format})")
    return 0


def _config_init(path: Path, args: argparse.Namespace) -> int:
    if path.exists() and not args.force:
        print(f"{path} already exists; pass --force to overwrite it.")
        return 1
    # Seed from the environment so an existing .env carries over.
    if not save_config_to_file(load_config_from_env(), path):
        return 1
    print(f"Configuration created at: {path}")
    return 0


def _config_validate(path: Path, args: argparse.Namespace) -> int:
    config = load_config_from_file(path)
    if config is None:
        print(f"Error: no usable config at {path}", file=sys.stderr)
        return 1

    check = SelfTest(config).validate_config()
    for error in check.errors:
        print(f"  ✗ {error}")
    for warning in check.warnings:
        print(f"  ! {warning}")
    if not check.valid:
        return 1
    print(f"Configuration at {path} is valid.")
    return 0


_CONFIG_ACTIONS = {
    "show": _config_show,
    "init": _config_init,
    "validate": _config_validate,
}


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH
    return _CONFIG_ACTIONS[args.action](path, args)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcsrv-status",
        description="Minecraft server status checker and MOTD toolkit",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # status
    status_parser = subparsers.add_parser("status", help="Check the status of a Minecraft server")
    status_parser.add_argument("hostname", help="Server hostname or IP (e.g., mc.hypixel.net)")
    status_parser.add_argument(
        "--port", "-p",
        type=int,
        help="Server port (default: 25565 Java, 19132 Bedrock)",
    )
    status_parser.add_argument(
        "--bedrock", "-b",
        action="store_true",
        help="Query a Bedrock Edition server",
    )
    status_parser.add_argument("--json", action="store_true", help="Print the full response as JSON")
    status_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Answer with placeholder data instead of querying the status APIs",
    )
    status_parser.add_argument("--config", "-c", help="JSON config file (default: environment)")
    status_parser.add_argument("--verbose", "-v", action="store_true", help="Log at debug level")
    status_parser.set_defaults(func=cmd_status)

    # motd
    motd_parser = subparsers.add_parser("motd", help="Work with formatted MOTD text")
    motd_parser.add_argument(
        "action",
        choices=[
            "render", "convert", "gradient", "center", "length",
            "validate", "strip", "encode", "decode",
        ],
        help="MOTD action",
    )
    motd_parser.add_argument("text", help="MOTD text (& and § codes are both accepted)")
    motd_parser.add_argument(
        "--format", "-f",
        choices=[d.value for d in MotdDialect],
        default=MotdDialect.SPIGOT.value,
        help="Target dialect for 'convert' (default: spigot)",
    )
    motd_parser.add_argument("--start", default="#FF5555", help="Gradient start color (default: #FF5555)")
    motd_parser.add_argument("--end", default="#5555FF", help="Gradient end color (default: #5555FF)")
    motd_parser.add_argument(
        "--width", "-w",
        type=int,
        default=motd_formatter.DEFAULT_LINE_WIDTH,
        help="Line width for 'center' and 'validate' (default: 60)",
    )
    motd_parser.set_defaults(func=cmd_motd)

    # config
    config_parser = subparsers.add_parser("config", help="Manage the JSON config file")
    config_parser.add_argument("action", choices=sorted(_CONFIG_ACTIONS))
    config_parser.add_argument("--path", "-p", help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    config_parser.add_argument("--force", "-f", action="store_true", help="Overwrite on 'init'")
    config_parser.set_defaults(func=cmd_config)

    # self-test
    self_test_parser = subparsers.add_parser(
        "self-test",
        help="Validate configuration and upstream connectivity",
    )
    self_test_parser.add_argument("--config", "-c", help="JSON config file (default: environment)")
    self_test_parser.set_defaults(func=cmd_self_test)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point; returns the process exit code."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
