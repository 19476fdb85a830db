import argparse
import asyncio
import os
import signal
import sys

import structlog
from prometheus_client import start_http_server

from quotabar.cli import parse_args
from quotabar.config import Config
from quotabar.engine import UsageEngine
from quotabar.errors import QuotaError
from quotabar.logging import setup_logging
from quotabar.metrics import MetricsUpdater
from quotabar.models import StatusPayload
from quotabar.paginator import BillingPaginator
from quotabar.provider.minimax import OVERSEAS_BASE_URL, MiniMaxProvider
from quotabar.refresher import Refresher
from quotabar.statusline import (
    StatuslineInput,
    render_compact,
    render_status,
    render_statusline,
)

logger = structlog.get_logger()


def _parse_listen_address(addr: "str") -> "tuple[str, int]":
    """
    parses listen address in format ':9186' or '0.0.0.0:9186'.
    """
    if addr.startswith(":"):
        return ("0.0.0.0", int(addr[1:]))

    host, port = addr.rsplit(":", 1)
    return (host, int(port))


def build_engine(config: "Config", metrics: "MetricsUpdater") -> "UsageEngine":
    config.require_credentials()

    primary = MiniMaxProvider(token=config.token, group_id=config.group_id)
    secondary = None
    if config.overseas_enabled:
        secondary = MiniMaxProvider(
            token=config.overseas_token,
            group_id=config.overseas_group_id,
            base_url=OVERSEAS_BASE_URL,
            name="overseas",
        )
        logger.info("secondary_account_enabled", provider="overseas")

    return UsageEngine(
        primary=primary,
        paginator=BillingPaginator(primary, metrics),
        metrics=metrics,
        secondary=secondary,
    )


def cmd_auth(args: "argparse.Namespace", config: "Config") -> "int":
    if args.overseas:
        config.overseas_token = args.token
        config.overseas_group_id = args.group_id
    else:
        config.token = args.token
        config.group_id = args.group_id
    config.save()
    print(f"✓ credentials saved to {config.config_path}")
    return 0


async def cmd_health(config: "Config") -> "int":
    checks = {
        "config file": config.config_path.exists(),
        "token": bool(config.token),
        "group id": bool(config.group_id),
        "api": False,
    }

    if checks["token"] and checks["group id"]:
        engine = build_engine(config, MetricsUpdater())
        try:
            await engine.fetch_quota(force_refresh=True)
            checks["api"] = True
        except QuotaError as e:
            print(f"✗ api: {e}")
        finally:
            await engine.close()

    for name, passed in checks.items():
        print(f"{'✓' if passed else '✗'} {name}")

    if all(checks.values()):
        print("all checks passed")
        return 0
    print("some checks failed, see above")
    return 1


async def cmd_status(args: "argparse.Namespace", config: "Config") -> "int":
    metrics = MetricsUpdater()
    engine = build_engine(config, metrics)

    def _show(payload: "StatusPayload") -> "None":
        if args.compact:
            print(render_compact(payload))
        else:
            print(render_status(payload, args.locale))

    try:
        if not args.watch:
            _show(await engine.refresh())
            return 0

        if args.metrics_address:
            host, port = _parse_listen_address(args.metrics_address)
            start_http_server(port, addr=host)
            logger.info("metrics_server_started", host=host, port=port)

        refresher = Refresher(
            engine,
            _show,
            config.refresh_interval,
            on_error=lambda e: print(f"update failed: {e}", file=sys.stderr),
        )
        loop = asyncio.get_running_loop()
        # for SIGINT and SIGTERM, signal the refresher
        # to stop gracefully
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, refresher.stop)
        await refresher.run()
        return 0
    finally:
        await engine.close()


async def cmd_statusline(config: "Config") -> "int":
    stdin_text = "" if sys.stdin.isatty() else sys.stdin.read()
    session = StatuslineInput.from_json(stdin_text)

    try:
        engine = build_engine(config, MetricsUpdater())
    except QuotaError as e:
        print(f"❌ MiniMax error: {e}")
        return 0

    try:
        payload = await engine.refresh(
            transcript_path=session.transcript_path,
            model_id=session.model_id,
        )
    except QuotaError as e:
        print(f"❌ MiniMax error: {e}")
        return 0
    finally:
        await engine.close()

    print(render_statusline(payload, session, os.path.basename(os.getcwd())))
    return 0


def main(argv: "list[str] | None" = None) -> "None":
    args, config = parse_args(argv)
    setup_logging(config.log_level, args.command)

    try:
        if args.command == "auth":
            code = cmd_auth(args, config)
        elif args.command == "health":
            code = asyncio.run(cmd_health(config))
        elif args.command == "status":
            code = asyncio.run(cmd_status(args, config))
        else:
            code = asyncio.run(cmd_statusline(config))
    except QuotaError as e:
        print(f"error: {e}", file=sys.stderr)
        code = 1

    raise SystemExit(code)


if __name__ == "__main__":
    main()
