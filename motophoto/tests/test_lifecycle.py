"""Tests for startup, serving and graceful shutdown against a real listener."""

import asyncio
import os
import signal
import socket
import sys
import threading
import time

import pytest
import requests

from motophoto.api.app import create_application
from motophoto.api.responses import write_json
from motophoto.config.environment import Settings
from motophoto.db import ConnectivityError, DatabaseConfig, create_pool
from motophoto.lifecycle import LifecycleManager, State


class CountingPool:
    """Stands in for DatabasePool and counts close() calls."""

    def __init__(self):
        self.close_calls = 0

    @property
    def closed(self):
        return self.close_calls > 0

    def close(self):
        self.close_calls += 1
        return self.close_calls == 1


def make_settings(**overrides):
    values = {"host": "127.0.0.1", "port": 0, "shutdown_timeout": 5.0}
    values.update(overrides)
    return Settings(**values)


def make_manager(settings=None, pool=None, app_factory=create_application, **kwargs):
    pool = pool if pool is not None else CountingPool()
    return LifecycleManager(
        settings or make_settings(),
        pool_factory=lambda _settings: pool,
        app_factory=app_factory,
        install_signal_handlers=False,
        configure_logging=False,
        **kwargs,
    )


def slow_app_factory(delay, in_flight):
    """Application with an extra /api/slow route that sleeps for `delay` seconds."""

    def factory(repository, settings):
        app = create_application(repository, settings)

        async def slow():
            in_flight.set()
            await asyncio.sleep(delay)
            return write_json(200, {"slow": True})

        app.add_api_route("/api/slow", slow, methods=["GET"])
        return app

    return factory


class Runner:
    """Runs a LifecycleManager on a background thread."""

    def __init__(self, manager):
        self.manager = manager
        self.exit_code = None
        self.thread = threading.Thread(target=self._run, daemon=True)

    def _run(self):
        self.exit_code = self.manager.run()

    def start(self, wait_ready=True):
        self.thread.start()
        if wait_ready:
            assert self.manager.ready.wait(10), "listener did not start"
        return self

    def join(self, timeout=15):
        self.thread.join(timeout)
        assert not self.thread.is_alive(), "manager did not stop"
        return self.exit_code

    @property
    def base_url(self):
        return f"http://127.0.0.1:{self.manager.bound_port}"


def request_in_background(url):
    result = {}

    def fetch():
        try:
            result["response"] = requests.get(url, timeout=30)
        except requests.RequestException as e:
            result["error"] = e

    thread = threading.Thread(target=fetch, daemon=True)
    thread.start()
    return thread, result


def test_serves_and_stops_cleanly():
    pool = CountingPool()
    runner = Runner(make_manager(pool=pool)).start()
    assert runner.manager.state is State.SERVING

    response = requests.get(f"{runner.base_url}/api/health", timeout=5)
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-ID"]

    response = requests.get(f"{runner.base_url}/api/v1/events/2", timeout=5)
    assert response.json()["name"] == "BMX Freestyle Invitational"

    runner.manager.request_shutdown()
    assert runner.join() == 0
    assert runner.manager.state is State.STOPPED
    assert pool.close_calls == 1


def test_repeated_shutdown_requests_close_pool_once():
    pool = CountingPool()
    runner = Runner(make_manager(pool=pool)).start()

    for _ in range(3):
        runner.manager.request_shutdown()
    assert runner.join() == 0

    runner.manager.request_shutdown()
    assert pool.close_calls == 1


def test_in_flight_request_completes_before_exit():
    in_flight = threading.Event()
    pool = CountingPool()
    manager = make_manager(pool=pool, app_factory=slow_app_factory(0.5, in_flight))
    runner = Runner(manager).start()

    client, result = request_in_background(f"{runner.base_url}/api/slow")
    assert in_flight.wait(5)
    manager.request_shutdown()

    assert runner.join() == 0
    client.join(5)
    assert result["response"].status_code == 200
    assert result["response"].json() == {"slow": True}
    assert manager.state is State.STOPPED
    assert not manager.forced_shutdown
    assert pool.close_calls == 1


def test_stuck_request_is_force_closed_after_grace_period():
    in_flight = threading.Event()
    pool = CountingPool()
    manager = make_manager(
        settings=make_settings(shutdown_timeout=0.5),
        pool=pool,
        app_factory=slow_app_factory(3600, in_flight),
    )
    runner = Runner(manager).start()

    client, result = request_in_background(f"{runner.base_url}/api/slow")
    assert in_flight.wait(5)
    manager.request_shutdown()

    assert runner.join() == 1
    assert manager.state is State.STOPPED
    assert manager.forced_shutdown
    assert pool.close_calls == 1

    client.join(5)
    assert not client.is_alive()
    if "response" in result:
        assert result["response"].status_code == 500
    else:
        assert isinstance(result["error"], requests.ConnectionError)


def test_pool_failure_aborts_before_serving():
    def failing_pool(_settings):
        raise ConnectivityError("database unreachable")

    manager = LifecycleManager(
        make_settings(),
        pool_factory=failing_pool,
        install_signal_handlers=False,
        configure_logging=False,
    )
    assert manager.run() == 1
    assert manager.state is State.ABORTED
    assert manager.server is None
    assert not manager.ready.is_set()


def test_app_failure_releases_pool():
    pool = CountingPool()

    def broken_app_factory(repository, settings):
        raise RuntimeError("router construction failed")

    manager = make_manager(pool=pool, app_factory=broken_app_factory)
    assert manager.run() == 1
    assert manager.state is State.ABORTED
    assert pool.close_calls == 1


def test_listener_failure_aborts_and_releases_pool():
    pool = CountingPool()
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as taken:
        taken.bind(("127.0.0.1", 0))
        taken.listen()
        port = taken.getsockname()[1]

        manager = make_manager(settings=make_settings(port=port), pool=pool)
        runner = Runner(manager).start(wait_ready=False)
        assert runner.join() == 1

    assert manager.state is State.ABORTED
    assert not manager.ready.is_set()
    assert manager.bound_port is None
    assert pool.close_calls == 1


def test_shutdown_requested_before_start_aborts():
    pool = CountingPool()
    manager = make_manager(pool=pool)
    manager.request_shutdown()

    assert manager.run() == 1
    assert manager.state is State.ABORTED
    assert pool.close_calls == 1


def test_real_pool_is_closed_on_shutdown():
    manager = LifecycleManager(
        make_settings(database_url="sqlite://"),
        pool_factory=lambda s: create_pool(DatabaseConfig(url=s.database_url)),
        install_signal_handlers=False,
        configure_logging=False,
    )
    runner = Runner(manager).start()
    assert not manager.pool.closed

    manager.request_shutdown()
    assert runner.join() == 0
    assert manager.pool.closed


def test_illegal_transition_raises():
    manager = make_manager()
    with pytest.raises(RuntimeError):
        manager._transition(State.STOPPED)


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
@pytest.mark.parametrize("signum", [signal.SIGTERM, signal.SIGINT])
def test_termination_signal_drains(signum):
    pool = CountingPool()
    manager = LifecycleManager(
        make_settings(),
        pool_factory=lambda _settings: pool,
        install_signal_handlers=True,
        configure_logging=False,
    )

    def send_signal():
        if manager.ready.wait(10):
            os.kill(os.getpid(), signum)

    sender = threading.Thread(target=send_signal, daemon=True)
    sender.start()

    # Signal handlers can only be installed from the main thread
    assert manager.run() == 0
    sender.join(5)
    assert manager.state is State.STOPPED
    assert pool.close_calls == 1


def test_interrupt_during_startup_aborts():
    def interrupted_pool(_settings):
        raise KeyboardInterrupt

    manager = LifecycleManager(
        make_settings(),
        pool_factory=interrupted_pool,
        install_signal_handlers=False,
        configure_logging=False,
    )
    assert manager.run() == 1
    assert manager.state is State.ABORTED
    assert manager.server is None


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
def test_signal_during_pool_ping_aborts():
    pool = CountingPool()
    manager = None

    def slow_pool(_settings):
        # Stands in for a ping that is still waiting on the database
        os.kill(os.getpid(), signal.SIGINT)
        deadline = time.monotonic() + 5
        while not manager._shutdown_requested and time.monotonic() < deadline:
            time.sleep(0.01)
        return pool

    manager = LifecycleManager(
        make_settings(),
        pool_factory=slow_pool,
        install_signal_handlers=True,
        configure_logging=False,
    )

    assert manager.run() == 1
    assert manager.state is State.ABORTED
    assert not manager.ready.is_set()
    assert pool.close_calls == 1
