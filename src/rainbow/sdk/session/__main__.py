import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from rainbow.sdk.cli import configure_logging, configure_sentry
from rainbow.sdk.config import Settings
from rainbow.sdk.session.health import HealthProbe
from rainbow.sdk.session.scheduler import AsyncioScheduler
from rainbow.sdk.transport.http import AiohttpTransport

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="rainbow-probe", description="Check the health of a Rainbow platform"
    )
    parser.add_argument("--host", default=None, help="Platform hostname to probe.")
    parser.add_argument(
        "--settle-delay",
        type=float,
        default=None,
        help="Seconds to wait between the ping and the sub-service checks.",
    )
    parser.add_argument(
        "--every-portal",
        action="store_true",
        help="Check every sub-service even if the host is not a known deployment.",
    )
    return parser.parse_args(argv)


async def realMain(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    overrides = {}
    if args.host is not None:
        overrides["host"] = args.host
    if args.settle_delay is not None:
        overrides["probe_settle_delay"] = args.settle_delay
    settings = Settings(**overrides)

    configure_sentry(settings)

    transport = AiohttpTransport.from_settings(settings)
    probe = HealthProbe(
        transport,
        AsyncioScheduler(),
        official_deployment=args.every_portal or settings.is_official_deployment,
        settle_delay=settings.probe_settle_delay,
    )

    try:
        pong = await probe.check()
        print(f"healthy {settings.base_url} {pong}")
        return 0
    except Exception:
        logger.exception("Probe of %s failed", settings.base_url)
        print(f"unhealthy {settings.base_url}")
        return 1
    finally:
        await transport.close()


def main() -> None:
    configure_logging()
    sys.exit(asyncio.run(realMain()))


if __name__ == "__main__":
    main()
