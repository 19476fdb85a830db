import argparse

from quotabar.config import Config


def _add_common(parser: "argparse.ArgumentParser") -> "None":
    parser.add_argument(
        "--log.level",
        dest="log_level",
        default="warning",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: warning)",
    )


def build_parser() -> "argparse.ArgumentParser":
    parser = argparse.ArgumentParser(
        prog="quotabar",
        description="Coding plan quota and token usage status line",
    )
    _add_common(parser)
    sub = parser.add_subparsers(dest="command", required=True)

    auth = sub.add_parser("auth", help="Save credentials")
    auth.add_argument("token", help="API access token")
    auth.add_argument("group_id", metavar="groupId", help="Account group id")
    auth.add_argument(
        "--overseas",
        action="store_true",
        help="Store as the secondary (overseas) account",
    )

    sub.add_parser("health", help="Check configuration and API connectivity")

    status = sub.add_parser("status", help="Show current usage")
    status.add_argument("-c", "--compact", action="store_true", help="Compact output")
    status.add_argument("-w", "--watch", action="store_true", help="Refresh periodically")
    status.add_argument(
        "--refresh.interval",
        dest="refresh_interval",
        type=int,
        default=None,
        help="Refresh interval in seconds for --watch (default: 30)",
    )
    status.add_argument(
        "--metrics.listen-address",
        dest="metrics_address",
        default="",
        help="Serve Prometheus metrics while watching, e.g. ':9186'",
    )
    status.add_argument(
        "--locale",
        default="en-US",
        choices=["en-US", "zh-CN"],
        help="Number formatting locale (default: en-US)",
    )

    sub.add_parser(
        "statusline",
        help="Single-shot status line; reads the session JSON from stdin",
    )
    return parser


def parse_args(argv: "list[str] | None" = None) -> "tuple[argparse.Namespace, Config]":
    args = build_parser().parse_args(argv)
    config = Config.from_env()
    config.log_level = args.log_level
    if getattr(args, "refresh_interval", None):
        config.refresh_interval = args.refresh_interval
    return args, config
