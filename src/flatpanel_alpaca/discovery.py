from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any

import structlog

from .config.settings import Settings

logger = structlog.get_logger(__name__)


@dataclass
class DiscoveryService:
    """Implements the Alpaca UDP discovery responder."""

    settings: Settings
    _task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> "DiscoveryService":
        self._task = asyncio.create_task(self._serve())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def _serve(self) -> None:
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            lambda: DiscoveryProtocol(self.settings),
            local_addr=(self.settings.discovery_interface, self.settings.discovery_port),
            allow_broadcast=True,
        )
        logger.info(
            "discovery.started",
            interface=self.settings.discovery_interface,
            port=self.settings.discovery_port,
        )
        try:
            await asyncio.Future()
        except asyncio.CancelledError:
            logger.info("discovery.stopping")
        finally:
            transport.close()


class DiscoveryProtocol(asyncio.DatagramProtocol):
    def __init__(self, settings: Settings) -> None:
        super().__init__()
        self.settings = settings
        self.transport: asyncio.DatagramTransport | None = None
        self._magic = settings.discovery_message.encode("ascii")

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr) -> None:
        if not is_discovery_probe(data, self._magic):
            logger.debug("discovery.ignored", address=addr, size=len(data))
            return
        if self.transport is None:
            return

        payload = json.dumps(build_discovery_payload(self.settings)).encode()
        self.transport.sendto(payload, addr)
        logger.debug("discovery.responded", address=addr)

    def error_received(self, exc: Exception) -> None:
        logger.warning("discovery.error", error=str(exc))


def is_discovery_probe(data: bytes, magic: bytes) -> bool:
    return data.startswith(magic)


def build_discovery_payload(settings: Settings) -> dict[str, Any]:
    return {"AlpacaPort": settings.http_port}
