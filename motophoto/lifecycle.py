"""Process lifecycle management.

The manager owns the service from startup to exit:

    STARTING -> SERVING -> DRAINING -> STOPPED
    any non-terminal state -> ABORTED

The listener (a uvicorn Server) runs as its own asyncio task while the main
flow waits for a termination request. Whichever happens first, listener exit
or termination, decides the way out of SERVING; both paths go through the
same drain procedure, which releases the database pool exactly once.
"""

import asyncio
import contextlib
import logging
import signal
import threading
import time
from enum import Enum
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI

from .api.app import create_application
from .config.environment import Settings
from .db import (
    DEMO_EVENTS,
    DatabaseConfig,
    DatabasePool,
    EventRepository,
    InMemoryEventRepository,
    create_pool,
)
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

KEEP_ALIVE_TIMEOUT = 60
EXIT_OK = 0
EXIT_FAILURE = 1

PoolFactory = Callable[[Settings], Optional[DatabasePool]]
AppFactory = Callable[[EventRepository, Settings], FastAPI]


class State(Enum):
    STARTING = 'starting'
    SERVING = 'serving'
    DRAINING = 'draining'
    STOPPED = 'stopped'
    ABORTED = 'aborted'


TERMINAL_STATES = frozenset({State.STOPPED, State.ABORTED})

_TRANSITIONS = {
    State.STARTING: {State.SERVING, State.ABORTED},
    State.SERVING: {State.DRAINING, State.ABORTED},
    State.DRAINING: {State.STOPPED, State.ABORTED},
    State.STOPPED: set(),
    State.ABORTED: set(),
}


def default_pool_factory(settings: Settings) -> DatabasePool:
    """Create the connection pool described by the settings."""
    return create_pool(DatabaseConfig(
        url=settings.database_url,
        connect_timeout=settings.connect_timeout,
    ))


class Listener(uvicorn.Server):
    """uvicorn Server that leaves signal handling to the LifecycleManager."""

    def __init__(self, config: uvicorn.Config, on_started: Callable[[], None]):
        super().__init__(config)
        self._on_started = on_started

    @contextlib.contextmanager
    def capture_signals(self):
        yield

    async def startup(self, sockets=None) -> None:
        await super().startup(sockets=sockets)
        if self.started:
            self._on_started()


class LifecycleManager:
    """
    Runs the API service with graceful shutdown.

    Args:
        settings: Resolved process settings
        pool_factory: Builds the database pool during startup
        app_factory: Builds the ASGI application from the repository
        repository: Event store; the demo events when omitted
        install_signal_handlers: Translate SIGINT/SIGTERM into a shutdown request
        configure_logging: Install logging from the settings when run() starts
    """

    def __init__(
        self,
        settings: Settings,
        pool_factory: PoolFactory = default_pool_factory,
        app_factory: AppFactory = create_application,
        repository: Optional[EventRepository] = None,
        install_signal_handlers: bool = True,
        configure_logging: bool = True,
    ):
        self.settings = settings
        self.pool_factory = pool_factory
        self.app_factory = app_factory
        self.repository = repository
        self.install_signal_handlers = install_signal_handlers
        self.configure_logging = configure_logging

        self.state = State.STARTING
        self.pool: Optional[DatabasePool] = None
        self.server: Optional[Listener] = None
        self.forced_shutdown = False

        self.ready = threading.Event()
        self.finished = threading.Event()

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._shutdown_requested = False
        self._released = False
        self._state_lock = threading.Lock()

    # -- state -------------------------------------------------------------

    def _transition(self, new_state: State) -> None:
        with self._state_lock:
            if new_state not in _TRANSITIONS[self.state]:
                raise RuntimeError(f"Illegal transition {self.state.value} -> {new_state.value}")
            logger.debug(f"Lifecycle {self.state.value} -> {new_state.value}")
            self.state = new_state

    @property
    def bound_port(self) -> Optional[int]:
        """Port the listener is bound to, useful when configured with port 0."""
        # uvicorn sets `servers` only once it has bound
        for server in getattr(self.server, 'servers', None) or ():
            for sock in server.sockets:
                return sock.getsockname()[1]
        return None

    # -- shutdown requests ---------------------------------------------------

    def request_shutdown(self) -> None:
        """Ask the manager to drain and stop. Safe to call from any thread."""
        if self.state in TERMINAL_STATES:
            return
        loop, event = self._loop, self._shutdown_event
        if loop is None or event is None:
            self._shutdown_requested = True
            return
        if self._shutdown_requested:
            logger.info("Shutdown already in progress")
            return
        self._shutdown_requested = True
        try:
            loop.call_soon_threadsafe(event.set)
        except RuntimeError:
            logger.debug("Event loop already closed, nothing to shut down")

    def _handle_signal(self, signum: int) -> None:
        logger.info(f"Received {signal.Signals(signum).name}")
        self.request_shutdown()

    def _add_signal_handlers(self) -> list:
        installed = []
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                self._loop.add_signal_handler(signum, self._handle_signal, signum)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                logger.warning(f"Cannot install handler for {signal.Signals(signum).name}: {e}")
                continue
            installed.append(signum)
        return installed

    def _remove_signal_handlers(self, installed: list) -> None:
        for signum in installed:
            self._loop.remove_signal_handler(signum)

    # -- startup -------------------------------------------------------------

    def _on_started(self) -> None:
        self._transition(State.SERVING)
        logger.info(f"Server started on {self.settings.host}:{self.bound_port}")
        self.ready.set()

    def _build(self) -> None:
        self.pool = self.pool_factory(self.settings)
        if self.repository is None:
            self.repository = InMemoryEventRepository(DEMO_EVENTS)
        app = self.app_factory(self.repository, self.settings)

        config = uvicorn.Config(
            app,
            host=self.settings.host,
            port=self.settings.port,
            lifespan='off',
            log_config=None,
            access_log=False,
            timeout_keep_alive=KEEP_ALIVE_TIMEOUT,
            # Draining is bounded here, not by uvicorn
            timeout_graceful_shutdown=None,
        )
        self.server = Listener(config, on_started=self._on_started)

    async def _listen(self) -> Optional[BaseException]:
        """Run the listener; returns the failure instead of raising it."""
        try:
            await self.server.serve()
        except SystemExit as e:
            # uvicorn exits this way when it cannot bind
            return e
        except Exception as e:
            logger.exception("Listener crashed")
            return e
        return None

    # -- shutdown ------------------------------------------------------------

    def _force_close(self) -> None:
        server = self.server
        server.force_exit = True
        tasks = list(server.server_state.tasks)
        connections = list(server.server_state.connections)
        logger.error(
            f"Server forced to shutdown: cancelling {len(tasks)} request(s), "
            f"closing {len(connections)} connection(s)"
        )
        for task in tasks:
            task.cancel()
        for connection in connections:
            transport = getattr(connection, 'transport', None)
            if transport is not None and not transport.is_closing():
                transport.close()

    async def _drain(self, listener: 'asyncio.Task') -> None:
        """Stop accepting, wait out in-flight requests, then release resources."""
        if self.server is not None and not listener.done():
            self.server.should_exit = True
            started = time.monotonic()
            done, _ = await asyncio.wait({listener}, timeout=self.settings.shutdown_timeout)
            if not done:
                self.forced_shutdown = True
                self._force_close()
                await listener
            logger.debug(f"Listener stopped after {time.monotonic() - started:.2f}s")
        if self.server is not None:
            # uvicorn skips its own shutdown when asked to exit during startup
            for server in getattr(self.server, 'servers', None) or ():
                server.close()
        self._release()

    def _release(self) -> None:
        """Release owned resources. Runs at most once."""
        if self._released:
            return
        self._released = True
        if self.pool is not None:
            self.pool.close()

    # -- entry points ----------------------------------------------------------

    async def serve(self) -> int:
        """Run through the whole lifecycle and return the process exit code."""
        self._loop = asyncio.get_running_loop()
        self._shutdown_event = asyncio.Event()
        # Installed before the pool ping so a signal during startup aborts cleanly
        installed = self._add_signal_handlers() if self.install_signal_handlers else []
        waiter = None

        try:
            try:
                # The ping blocks for up to connect_timeout; keep the loop free for signals
                await asyncio.to_thread(self._build)
            except KeyboardInterrupt:
                logger.error("Startup interrupted")
                self._transition(State.ABORTED)
                return EXIT_FAILURE
            except Exception as e:
                logger.error(f"Failed to create server: {e}")
                self._transition(State.ABORTED)
                return EXIT_FAILURE

            if self._shutdown_requested:
                logger.warning("Shutdown requested before the server started")
                self._transition(State.ABORTED)
                return EXIT_FAILURE

            logger.info(f"Server starting on {self.settings.host}:{self.settings.port}")

            listener = asyncio.create_task(self._listen(), name='listener')
            waiter = asyncio.create_task(self._shutdown_event.wait(), name='shutdown-waiter')
            await asyncio.wait({listener, waiter}, return_when=asyncio.FIRST_COMPLETED)

            if listener.done():
                # The listener never started or stopped on its own
                failure = listener.result()
                if failure is not None:
                    logger.error(f"Server failed: {failure!r}")
                else:
                    logger.error("Server stopped unexpectedly")
                await self._drain(listener)
                self._transition(State.ABORTED)
                return EXIT_FAILURE

            if self.state is State.STARTING:
                # Termination arrived before the listener was up
                await self._drain(listener)
                self._transition(State.ABORTED)
                return EXIT_FAILURE

            logger.info("Server shutting down")
            self._transition(State.DRAINING)
            await self._drain(listener)
            self._transition(State.STOPPED)
            if self.forced_shutdown:
                return EXIT_FAILURE
            logger.info("Server stopped")
            return EXIT_OK
        finally:
            if waiter is not None and not waiter.done():
                waiter.cancel()
            self._remove_signal_handlers(installed)
            self._release()
            self.finished.set()

    def run(self) -> int:
        """Blocking entry point used by main.py."""
        if self.configure_logging:
            setup_logging(self.settings.log_level, self.settings.log_json)
        return asyncio.run(self.serve())


__all__ = ['LifecycleManager', 'State', 'TERMINAL_STATES', 'default_pool_factory']
