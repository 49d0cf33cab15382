"""
Platform health probing.

A probe first pings the platform. On a real deployment it then waits for the
sub-services to settle and asks every one of them for its `about` document, in parallel.
The probe succeeds only when every request answered without error; the payloads are
only logged.
"""

import asyncio
import logging
from time import time
from typing import Any, Dict, Mapping, Optional

from rainbow.sdk.auth.credentials import default_headers
from rainbow.sdk.config import PING_PATH, PORTAL_ABOUT_PATHS
from rainbow.sdk.metrics import MetricsClient, NoOpMetricsClient
from rainbow.sdk.session.scheduler import Scheduler
from rainbow.sdk.transport.base import Transport

logger = logging.getLogger(__name__)


class HealthProbe:
    def __init__(
        self,
        transport: Transport,
        scheduler: Scheduler,
        official_deployment: bool,
        settle_delay: float = 10.0,
        portals: Optional[Mapping[str, str]] = None,
        metrics_client: Optional[MetricsClient] = None,
    ) -> None:
        self._transport = transport
        self._scheduler = scheduler
        self.official_deployment = official_deployment
        self.settle_delay = settle_delay
        self.portals = dict(PORTAL_ABOUT_PATHS if portals is None else portals)
        self._metrics_client = metrics_client or NoOpMetricsClient()

    async def ping(self) -> Any:
        return await self._transport.get(PING_PATH, default_headers())

    async def check_every_portal(self) -> Dict[str, Any]:
        """
        Query every sub-service `about` endpoint in parallel.

        Outside a real deployment (sandboxes, test hosts) the sub-services are not
        checked and `{"status": "OK"}` is returned.

        Raises:
            Exception: The first failure, once every request has completed.
        """
        if not self.official_deployment:
            logger.debug(
                "not a production deployment, do not check every portal about status"
            )
            return {"status": "OK"}

        names = list(self.portals.keys())
        results = await asyncio.gather(
            *[self._transport.get(self.portals[name], default_headers()) for name in names],
            return_exceptions=True,
        )

        abouts: Dict[str, Any] = {}
        failure: Optional[BaseException] = None
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.debug("%s about failed: %r", name, result)
                if failure is None:
                    failure = result
                continue
            logger.debug("%s about: %s", name, result)
            abouts[name] = result

        if failure is not None:
            raise failure

        return abouts

    async def check(self) -> Any:
        """
        Run a full probe: ping, settle, then every portal.
        """
        start_time = time()
        result = "failure"
        try:
            pong = await self.ping()
            logger.debug(
                "ping answered, waiting %.1f seconds before checking every portal",
                self.settle_delay,
            )
            await self._scheduler.sleep(self.settle_delay)
            await self.check_every_portal()
            result = "success"
            logger.debug("connection succeeded")
            return pong
        finally:
            self._metrics_client.timer(
                "rainbow.session.probe.time",
                time() - start_time,
                tag_dict={"result": result},
            )
