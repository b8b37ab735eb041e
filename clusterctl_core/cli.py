"""RoadCache clusterctl - Cluster Control Command Line.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

Usage:
    clusterctl stop              ask every member to terminate itself
    clusterctl ensure [COUNT]    wait for COUNT members (default 1) and the
                                 required service; exit 1 if they never show
    clusterctl status            print the current membership
    clusterctl join              run a cluster member in this process
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, List, Optional

from clusterctl_core.cluster.member import ClusterMember, MemberRole
from clusterctl_core.control.config import ControlConfig
from clusterctl_core.control.poller import ConvergencePoller, ConvergenceTarget
from clusterctl_core.control.probe import MembershipProbe
from clusterctl_core.control.shutdown import ShutdownCoordinator
from clusterctl_core.member.agent import AgentConfig, MemberAgent
from clusterctl_core.provider.backend import ClusterError, ClusterProvider
from clusterctl_core.provider.redis import RedisProvider, RedisProviderConfig

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

ProviderFactory = Callable[[argparse.Namespace, MemberRole], ClusterProvider]


class UsageError(Exception):
    """Raised when the command line cannot be parsed."""


class _Parser(argparse.ArgumentParser):
    """Argument parser that prints usage to stdout instead of exiting."""

    def error(self, message):
        self.print_usage(sys.stdout)
        print(f"{self.prog}: error: {message}")
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    """Build the clusterctl argument parser."""
    parser = _Parser(
        prog="clusterctl",
        description="Start, stop and observe a RoadCache cluster from outside.",
    )

    redis_group = parser.add_argument_group("redis")
    redis_group.add_argument("--host", default="localhost", help="Redis host")
    redis_group.add_argument("--port", type=int, default=6379, help="Redis port")
    redis_group.add_argument("--db", type=int, default=0, help="Redis database")
    redis_group.add_argument("--password", default=None, help="Redis password")
    redis_group.add_argument("--prefix", default="clusterctl:", help="Key prefix")

    parser.add_argument("--cluster", default="roadcache", help="Cluster name")
    parser.add_argument(
        "--service",
        default=ControlConfig.required_service,
        help="Service that must be running for ensure",
    )
    parser.add_argument(
        "--invocation-service",
        default=ControlConfig.invocation_service,
        help="Service commands are broadcast through",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=ControlConfig.max_attempts,
        help="Probes before ensure gives up",
    )
    parser.add_argument(
        "--interval-ms",
        type=int,
        default=ControlConfig.poll_interval_ms,
        help="Milliseconds between probes",
    )
    parser.add_argument(
        "--settle",
        type=float,
        default=ControlConfig.settle_seconds,
        help="Seconds to wait after stop before re-checking",
    )
    parser.add_argument(
        "--terminate-delay",
        type=float,
        default=ControlConfig.terminate_delay_seconds,
        help="Seconds members wait before exiting on stop",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    subparsers.add_parser("stop", help="Ask all members to terminate")

    ensure_parser = subparsers.add_parser(
        "ensure", help="Wait until COUNT members and the service are up"
    )
    ensure_parser.add_argument(
        "count",
        type=int,
        nargs="?",
        default=1,
        help="Members expected besides this tool (default 1)",
    )

    subparsers.add_parser("status", help="Print current membership")

    join_parser = subparsers.add_parser("join", help="Run a cluster member")
    join_parser.add_argument(
        "--services",
        nargs="*",
        default=[ControlConfig.required_service],
        help="Services this member advertises",
    )
    join_parser.add_argument(
        "--heartbeat",
        type=float,
        default=5.0,
        help="Seconds between heartbeats",
    )

    return parser


def control_config(args: argparse.Namespace) -> ControlConfig:
    """Build a ControlConfig from parsed arguments."""
    return ControlConfig(
        required_service=args.service,
        invocation_service=args.invocation_service,
        max_attempts=args.max_attempts,
        poll_interval_ms=args.interval_ms,
        settle_seconds=args.settle,
        terminate_delay_seconds=args.terminate_delay,
    )


def redis_provider(args: argparse.Namespace, role: MemberRole) -> ClusterProvider:
    """Create the Redis provider described by the arguments."""
    config = RedisProviderConfig(
        cluster_name=args.cluster,
        host=args.host,
        port=args.port,
        db=args.db,
        password=args.password,
        prefix=args.prefix,
    )
    # Only join takes --heartbeat
    config.heartbeat_interval = getattr(args, "heartbeat", config.heartbeat_interval)
    return RedisProvider(config, ClusterMember.local(role))


def cmd_stop(args: argparse.Namespace, provider_factory: ProviderFactory) -> int:
    """Stop the cluster. Always exits 0."""
    config = control_config(args)
    try:
        with provider_factory(args, MemberRole.CONTROL) as provider:
            report = ShutdownCoordinator(provider, config).stop()
    except ClusterError:
        logger.exception("Cluster fault during stop")
        return EXIT_OK

    logger.info(f"Stop finished: {report.outcome.name.lower()}")
    return EXIT_OK


def cmd_ensure(args: argparse.Namespace, provider_factory: ProviderFactory) -> int:
    """Wait for the cluster to reach the requested size."""
    config = control_config(args)
    try:
        target = ConvergenceTarget.for_other_members(
            args.count,
            config.required_service,
            max_attempts=config.max_attempts,
            poll_interval_millis=config.poll_interval_ms,
        )
    except ValueError as e:
        logger.error(f"Invalid ensure target: {e}")
        return EXIT_FAILURE

    try:
        with provider_factory(args, MemberRole.CONTROL) as provider:
            result = ConvergencePoller(MembershipProbe(provider)).poll(target)
    except ClusterError:
        logger.exception("Cluster fault during ensure")
        return EXIT_FAILURE

    return EXIT_OK if result.converged else EXIT_FAILURE


def cmd_status(args: argparse.Namespace, provider_factory: ProviderFactory) -> int:
    """Print a snapshot of the cluster."""
    try:
        with provider_factory(args, MemberRole.CONTROL) as provider:
            local = provider.get_local_member()
            members = sorted(provider.enumerate_members(), key=lambda m: m.member_id)
            result = MembershipProbe(provider).probe(args.service)
    except ClusterError:
        logger.exception("Cluster fault during status")
        return EXIT_FAILURE

    print(f"Cluster {args.cluster}: {result.member_count} member(s)")
    for member in members:
        marker = "*" if member == local else " "
        print(f" {marker} {member.member_id}  {member.role.value}  {member.host}:{member.pid}")
    print(f"Service {args.service}: {'found' if result.service_found else 'not found'}")
    return EXIT_OK


def cmd_join(args: argparse.Namespace, provider_factory: ProviderFactory) -> int:
    """Run a member until it is told to terminate."""
    config = AgentConfig(
        services=list(args.services),
        invocation_service=args.invocation_service,
    )
    agent = MemberAgent(provider_factory(args, MemberRole.STORAGE), config)

    try:
        agent.start()
        agent.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except ClusterError:
        logger.exception("Cluster fault while running member")
        return EXIT_FAILURE
    finally:
        agent.stop()

    return EXIT_OK


COMMANDS = {
    "stop": cmd_stop,
    "ensure": cmd_ensure,
    "status": cmd_status,
    "join": cmd_join,
}


def main(
    argv: Optional[List[str]] = None,
    provider_factory: ProviderFactory = redis_provider,
) -> int:
    """Main CLI entry point.

    Args:
        argv: Arguments (default sys.argv[1:])
        provider_factory: Builds the cluster provider for a run

    Returns:
        Process exit code
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except UsageError:
        return EXIT_USAGE

    if args.command is None:
        parser.print_help(sys.stdout)
        return EXIT_USAGE

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    return COMMANDS[args.command](args, provider_factory)


if __name__ == "__main__":
    sys.exit(main())
