import asyncio
import contextlib
import itertools
import json
import logging
from typing import Any, Callable, List, Optional

from websockets.asyncio.client import ClientConnection, connect

from poolbook.errors import SubscriptionError, TransportError

logger = logging.getLogger(__name__)

LogCallback = Callable[[dict], None]
ErrorCallback = Callable[[TransportError], None]


class LogSubscription:
    """Handle to a running ``eth_subscribe("logs")`` stream."""

    def __init__(self, task: "asyncio.Task[None]"):
        self._task = task

    @property
    def active(self) -> bool:
        return not self._task.done()

    async def close(self) -> None:
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task


class WebsocketLogStream:
    def __init__(self, wss_url: str, reconnect_delay: float = 3.0, connector: Callable[..., Any] = connect):
        self.wss_url = wss_url
        self.reconnect_delay = reconnect_delay
        self._connect = connector
        self._request_ids = itertools.count(1)

    async def _open(self, address: str, topics: List[str]) -> tuple:
        ws = await self._connect(self.wss_url, ping_interval=20, ping_timeout=20)
        try:
            subscription_id = await self._subscribe(ws, address, topics)
        except BaseException:
            await ws.close()
            raise
        return ws, subscription_id

    async def _subscribe(self, ws: ClientConnection, address: str, topics: List[str]) -> str:
        request_id = next(self._request_ids)
        payload = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": "eth_subscribe",
            "params": ["logs", {"address": address, "topics": [topics]}],
        }
        await ws.send(json.dumps(payload))
        while True:
            response = json.loads(await ws.recv())
            if response.get("id") != request_id:
                continue
            if "error" in response:
                raise RuntimeError(response["error"])
            return response["result"]

    async def subscribe(
        self,
        address: str,
        topics: List[str],
        on_log: LogCallback,
        on_error: ErrorCallback,
    ) -> LogSubscription:
        """Open the subscription; later transport faults go to ``on_error`` and reconnect."""
        try:
            ws, subscription_id = await self._open(address, topics)
        except Exception as exc:
            raise SubscriptionError(f"Unable to subscribe to logs on {self.wss_url}: {exc}") from exc
        logger.info("Subscribed to logs of %s (subscription %s)", address, subscription_id)
        task = asyncio.create_task(self._pump(ws, subscription_id, address, topics, on_log, on_error))
        return LogSubscription(task)

    async def _pump(
        self,
        ws: Optional[ClientConnection],
        subscription_id: Optional[str],
        address: str,
        topics: List[str],
        on_log: LogCallback,
        on_error: ErrorCallback,
    ) -> None:
        try:
            while True:
                if ws is None:
                    try:
                        ws, subscription_id = await self._open(address, topics)
                        logger.info("Resubscribed to logs of %s (subscription %s)", address, subscription_id)
                    except Exception as exc:
                        on_error(TransportError(f"Reconnect to {self.wss_url} failed: {exc}"))
                        await asyncio.sleep(self.reconnect_delay)
                        continue
                try:
                    async for raw in ws:
                        message = json.loads(raw)
                        if message.get("method") != "eth_subscription":
                            continue
                        params = message.get("params", {})
                        if params.get("subscription") != subscription_id:
                            continue
                        result = params.get("result")
                        if result is None or result.get("removed"):
                            continue
                        on_log(result)
                    on_error(TransportError(f"Websocket {self.wss_url} closed"))
                except Exception as exc:
                    on_error(TransportError(f"Websocket {self.wss_url} failed: {exc}"))
                await ws.close()
                ws = None
                await asyncio.sleep(self.reconnect_delay)
        finally:
            if ws is not None:
                await ws.close()
