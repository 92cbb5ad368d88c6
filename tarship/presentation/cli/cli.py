"""
CLI Module

Architectural Intent:
- Command-line interface for tarship
- Delegates to the deployment pipeline via the composition root
- Supports --verbose/--debug flags for log level control; without them deploy
  uses the configured log_level
- Exit status: 0 for success, partial success and cancellation; 1 otherwise
"""

import argparse
import asyncio
import dataclasses
import logging
import sys
import traceback
from typing import Optional, Sequence
from tarship.application.dtos.deployment_dtos import Outcome
from tarship.application.use_cases.remote_shell import RemoteShell
from tarship.composition_root import create_container
from tarship.domain.errors import DeployError
from tarship.domain.value_objects.target_host import TargetHost
from tarship.infrastructure.config import build_request, load_config
from tarship.infrastructure.logging import configure_logging, parse_level


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tarship",
        description="Build, archive and ship an artifact to a fleet of SSH hosts",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    deploy_parser = subparsers.add_parser("deploy", help="Deploy the build output to all hosts")
    deploy_parser.add_argument(
        "--config", "-c", default=None, help="Path to JSON config (default: tarship.json)"
    )
    deploy_parser.add_argument(
        "--targets", "-t", help="Comma-separated user@host[:port] list, replaces configured hosts"
    )
    deploy_parser.add_argument(
        "--skip-build", action="store_true", help="Do not run the build command"
    )
    deploy_parser.add_argument(
        "--interactive", "-i", action="store_true", help="Confirm each stage before it runs"
    )
    deploy_parser.add_argument(
        "--sequential", action="store_true", help="Deploy to one host at a time"
    )
    deploy_parser.add_argument(
        "--json-logs", action="store_true", help="Emit structured JSON log lines"
    )

    exec_parser = subparsers.add_parser("exec", help="Run a command on one remote host")
    exec_parser.add_argument(
        "--target", "-t", required=True, help="user@host[:port] to run on"
    )
    exec_parser.add_argument("--cwd", default="/", help="Remote working directory")
    exec_parser.add_argument("remote_cmd", nargs=argparse.REMAINDER, help="Command to run")

    return parser


async def _deploy(args: argparse.Namespace, verbose: bool) -> int:
    config = load_config(args.config)
    if not verbose:
        configure_logging(level=parse_level(config.log_level), json_format=args.json_logs)
    targets = [t for t in args.targets.split(",") if t.strip()] if args.targets else None

    try:
        request = build_request(config, targets=targets)
    except ValueError as e:
        print(f"[-] Invalid target: {e}")
        return 1
    request = dataclasses.replace(
        request,
        skip_build=request.skip_build or args.skip_build,
        interactive=request.interactive or args.interactive,
        concurrent=request.concurrent and not args.sequential,
    )

    container = create_container(connect_timeout=config.fleet.connect_timeout)
    try:
        print(f"[*] Deploying {request.local_dir} to {len(request.hosts)} host(s)...")
        summary = await container.pipeline.deploy(request)
    except DeployError as e:
        print(f"[-] Deployment Failed: {e}")
        if verbose:
            traceback.print_exc()
        return 1
    except Exception as e:
        print(f"[-] Unexpected error during deployment: {e}")
        if verbose:
            traceback.print_exc()
        return 1

    if summary.hosts:
        print(summary.render())
    if summary.outcome == Outcome.SUCCESS:
        print(f"[+] Deployment Successful to all {summary.total} host(s).")
    elif summary.outcome == Outcome.PARTIAL:
        print(f"[!] Deployment succeeded on {summary.succeeded}/{summary.total} host(s).")
    elif summary.outcome == Outcome.CANCELLED:
        print(f"[*] Deployment cancelled before the {summary.cancelled_at} stage.")
    elif summary.outcome == Outcome.ABORTED:
        print(f"[-] Deployment aborted: {summary.error}")
    else:
        print("[-] Deployment Failed on every host.")
    return 0 if summary.outcome in (Outcome.SUCCESS, Outcome.PARTIAL, Outcome.CANCELLED) else 1


async def _exec(args: argparse.Namespace, verbose: bool) -> int:
    command = " ".join(args.remote_cmd).strip()
    if not command:
        print("[-] No command given")
        return 1
    try:
        host = TargetHost.parse(args.target)
    except ValueError as e:
        print(f"[-] Invalid target: {e}")
        return 1

    container = create_container()
    shell = RemoteShell(container.transport, [host], remote_cwd=args.cwd)
    try:
        result = await shell.exec(command)
    except DeployError as e:
        print(f"[-] Remote command failed: {e}")
        if verbose:
            traceback.print_exc()
        return 1

    if result.stdout:
        sys.stdout.write(result.stdout)
    if result.stderr:
        sys.stderr.write(result.stderr)
    return result.exit_code if result.exit_code is not None else 1


async def async_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    json_logs = getattr(args, "json_logs", False)
    if args.debug:
        configure_logging(level=logging.DEBUG, json_format=json_logs)
    elif args.verbose:
        configure_logging(level=logging.INFO, json_format=json_logs)
    else:
        configure_logging(level=logging.WARNING, json_format=json_logs)

    verbose = args.verbose or args.debug

    if args.command == "deploy":
        return await _deploy(args, verbose)
    if args.command == "exec":
        return await _exec(args, verbose)

    parser.print_help()
    return 0


def main():
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
