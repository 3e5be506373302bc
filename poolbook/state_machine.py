import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Optional, Tuple

from web3 import AsyncHTTPProvider, AsyncWeb3

from poolbook.config import ChainConfig, ListenerConfig, resolve_chain
from poolbook.errors import (
    ListenerError,
    MetadataError,
    RefreshError,
    ResolutionError,
    SubscriptionError,
    TransportError,
)
from poolbook.metadata import PoolMetadataLoader
from poolbook.multicall import ChainReader
from poolbook.notifications import Notification, Notifier
from poolbook.orderbook import build_order_book
from poolbook.pricing import sqrt_price_x96_to_price
from poolbook.protocols.uniswap_v3 import UniswapV3Pool
from poolbook.resolver import RegistryResolver
from poolbook.sampler import TickSampler
from poolbook.types import ErrorNotice, OrderBook, PoolMetadata, PoolState, PriceUpdate
from poolbook.wss import LogSubscription, WebsocketLogStream

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    CREATED = "created"
    RESOLVING = "resolving"
    LOADING_METADATA = "loading_metadata"
    WATCHING = "watching"
    STOPPED = "stopped"
    ERRORED = "errored"


_STARTABLE = (Phase.CREATED, Phase.STOPPED, Phase.ERRORED)
_IDLE = (Phase.CREATED, Phase.STOPPED)


@dataclass
class ListenerSession:
    phase: Phase = Phase.RESOLVING
    pool: Optional[UniswapV3Pool] = None
    metadata: Optional[PoolMetadata] = None
    tick_spacing: Optional[int] = None
    market_price: Optional[float] = None
    order_book: Optional[OrderBook] = None
    subscription: Optional[LogSubscription] = None
    refresh: Optional["asyncio.Future[Optional[OrderBook]]"] = None
    refresh_timer: Optional["asyncio.Task[None]"] = None


class MarketListener:
    """Streams swap prices for a registry market and rebuilds its order book on demand.

    Collaborators default to the chain's HTTP endpoint (reads) and websocket
    endpoint (log subscription); tests and embedders may inject their own.
    """

    def __init__(
        self,
        config: ListenerConfig,
        chains: Mapping[int, ChainConfig],
        *,
        reader=None,
        resolver=None,
        subscriber=None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.chain = resolve_chain(config, chains)
        if reader is None:
            web3 = AsyncWeb3(AsyncHTTPProvider(self.chain.rpc_url))
            reader = ChainReader(web3, self.chain.multicall_address)
        self.reader = reader
        self.resolver = resolver or RegistryResolver(reader)
        self.subscriber = subscriber or WebsocketLogStream(self.chain.wss_url)
        self._clock = clock
        self._notifier = Notifier()
        self._session: Optional[ListenerSession] = None

    # -- observers -------------------------------------------------------

    def on(self, kind, handler) -> Callable[[], None]:
        return self._notifier.on(kind, handler)

    # -- read-only state -------------------------------------------------

    @property
    def phase(self) -> Phase:
        return self._session.phase if self._session else Phase.CREATED

    @property
    def pool_address(self) -> Optional[str]:
        session = self._session
        return session.pool.pool_address if session and session.pool else None

    @property
    def metadata(self) -> Optional[PoolMetadata]:
        return self._session.metadata if self._session else None

    def get_market_price(self) -> Optional[float]:
        return self._session.market_price if self._session else None

    def get_order_book(self) -> Optional[OrderBook]:
        return self._session.order_book if self._session else None

    # -- lifecycle -------------------------------------------------------

    def _is_current(self, session: ListenerSession) -> bool:
        return self._session is session and session.phase is not Phase.STOPPED

    def _label(self) -> str:
        return f"market {self.config.market_id} on {self.chain.name}"

    async def start(self) -> None:
        if self.phase not in _STARTABLE:
            logger.warning("Listener for %s already started (%s)", self._label(), self.phase.value)
            return

        session = ListenerSession(phase=Phase.RESOLVING)
        self._session = session
        stage = session.phase.value
        try:
            pool_address = await self._stage(
                ResolutionError,
                self.resolver.resolve(self.config.chain_id, self.config.market_address, self.config.market_id),
            )
            if not self._is_current(session):
                return
            session.pool = UniswapV3Pool(self.reader.web3, pool_address)

            session.phase = Phase.LOADING_METADATA
            stage = session.phase.value
            metadata = await self._stage(
                MetadataError, PoolMetadataLoader(self.reader).load(session.pool.pool_address)
            )
            if not self._is_current(session):
                return
            session.metadata = metadata

            # no phase of its own; failures are labelled by the step
            stage = "subscribing"
            subscription = await self._stage(
                SubscriptionError,
                self.subscriber.subscribe(
                    session.pool.pool_address,
                    session.pool.swap_topics,
                    lambda raw: self._on_log(session, raw),
                    lambda exc: self._on_transport_error(session, exc),
                ),
            )
            if not self._is_current(session):
                await subscription.close()
                return
        except ListenerError as exc:
            if not self._is_current(session):
                logger.debug("Discarding start failure after stop: %s", exc)
                return
            session.phase = Phase.ERRORED
            logger.error("Failed to start listener for %s while %s: %s", self._label(), stage, exc)
            self._notifier.emit(Notification.ERROR, ErrorNotice(str(exc), stage, exc))
            raise

        session.subscription = subscription
        session.phase = Phase.WATCHING
        if self.config.refresh_interval:
            session.refresh_timer = asyncio.create_task(self._refresh_periodically(session))
        logger.info("Listening for Swap events on pool %s (%s)", session.pool.pool_address, self._label())

    @staticmethod
    async def _stage(error_type, awaitable):
        try:
            return await awaitable
        except error_type:
            raise
        except Exception as exc:
            raise error_type(str(exc)) from exc

    async def stop(self) -> None:
        session = self._session
        if session is None or session.phase in _IDLE:
            logger.warning("Listener for %s not started or already stopped", self._label())
            return

        logger.info("Stopping listener for %s", self._label())
        session.phase = Phase.STOPPED
        timer, session.refresh_timer = session.refresh_timer, None
        if timer is not None:
            timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await timer
        subscription, session.subscription = session.subscription, None
        if subscription is not None:
            await subscription.close()

    # -- live events -----------------------------------------------------

    def _on_log(self, session: ListenerSession, raw_log: dict) -> None:
        if not self._is_current(session) or session.phase is not Phase.WATCHING:
            return
        try:
            event = session.pool.decode_swap(raw_log)
        except ValueError as exc:
            logger.warning("Skipping undecodable swap log: %s", exc)
            self._notifier.emit(Notification.ERROR, ErrorNotice(str(exc), session.phase.value, exc))
            return

        metadata = session.metadata
        price = sqrt_price_x96_to_price(event.sqrt_price_x96, metadata.token0_decimals, metadata.token1_decimals)
        session.market_price = price

        update = PriceUpdate(
            price=price,
            raw_event=event,
            pool_address=session.pool.pool_address,
            chain_id=self.chain.chain_id,
            market_id=self.config.market_id,
            timestamp=int(self._clock() * 1000),
        )
        logger.debug("Swap on %s: price %.6f tick %d", session.pool.pool_address, price, event.tick)
        self._notifier.emit(Notification.PRICE_UPDATE, update)

    def _on_transport_error(self, session: ListenerSession, exc: TransportError) -> None:
        if not self._is_current(session):
            return
        logger.error("Error watching Swap events for %s: %s", self._label(), exc)
        self._notifier.emit(Notification.ERROR, ErrorNotice(str(exc), session.phase.value, exc))

    # -- order book ------------------------------------------------------

    async def refresh_order_book(self) -> Optional[OrderBook]:
        """Rebuild the order book, joining a refresh that is already in flight.

        Returns ``None`` when the listener is stopped before the reads finish.
        """
        session = self._session
        if session is None or session.phase is not Phase.WATCHING:
            raise RefreshError(f"Order book refresh requires a watching listener (phase {self.phase.value})")
        if session.refresh is None or session.refresh.done():
            session.refresh = asyncio.ensure_future(self._refresh(session))
        return await asyncio.shield(session.refresh)

    async def _read_pool_state(self, session: ListenerSession) -> PoolState:
        pool = session.pool
        calls = [pool.slot0(), pool.liquidity()]
        if session.tick_spacing is None:
            calls.append(pool.tick_spacing())
        try:
            results = await self.reader.call_many(calls)
        except Exception as exc:
            raise RefreshError(f"Pool state read failed for {pool.pool_address}: {exc}") from exc
        slot0, (liquidity,) = results[0], results[1]
        tick_spacing = session.tick_spacing if session.tick_spacing is not None else int(results[2][0])
        state = PoolState(
            current_tick=int(slot0[1]),
            active_liquidity=int(liquidity),
            tick_spacing=tick_spacing,
            token0_decimals=session.metadata.token0_decimals,
            token1_decimals=session.metadata.token1_decimals,
            sqrt_price_x96=int(slot0[0]),
        )
        session.tick_spacing = tick_spacing
        return state

    async def _build_order_book(self, session: ListenerSession) -> Tuple[OrderBook, int]:
        state = await self._read_pool_state(session)
        sample = await TickSampler(self.reader, session.pool).fetch(
            state.current_tick, state.tick_spacing, self.config.window_size
        )
        return build_order_book(state, sample.ticks), sample.failures

    async def _refresh(self, session: ListenerSession) -> Optional[OrderBook]:
        book, failures = await self._stage(RefreshError, self._build_order_book(session))
        if not self._is_current(session):
            logger.debug("Discarding order book refreshed after stop")
            return None
        session.order_book = book
        logger.info(
            "Order book at tick %d: %d bids, %d asks (%d tick reads failed)",
            book.mid_tick,
            len(book.bids),
            len(book.asks),
            failures,
        )
        self._notifier.emit(Notification.ORDERBOOK_UPDATE, book)
        return book

    async def _refresh_periodically(self, session: ListenerSession) -> None:
        while self._is_current(session):
            try:
                await self.refresh_order_book()
            except RefreshError as exc:
                logger.error("Order book refresh failed for %s: %s", self._label(), exc)
                self._notifier.emit(Notification.ERROR, ErrorNotice(str(exc), session.phase.value, exc))
            await asyncio.sleep(self.config.refresh_interval)
