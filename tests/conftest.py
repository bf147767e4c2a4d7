"""Shared pytest fixtures for discord_note_bridge tests.

These fixtures are automatically available to all test files in this directory.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from discord_note_bridge.config import Settings


class FakeClient:
    """Stand-in for NoteBridgeClient that never touches the network.

    ``connect()`` parks on a future; tests end the gateway session with
    :meth:`drop` (raises out of connect) or :meth:`close_cleanly`.
    """

    def __init__(self, login_error: BaseException | None = None) -> None:
        self.login = AsyncMock(side_effect=login_error)
        self.close = AsyncMock(side_effect=self._mark_closed)
        self.handlers: dict = {}
        self.user = "bridge#0001"
        self.tag = "bridge#0001"
        self.application_id = 1234
        self.http = MagicMock()
        self.http.bulk_upsert_global_commands = AsyncMock(return_value=[])
        self.fetch_text_channel = AsyncMock(return_value=None)
        self.connect_kwargs: dict | None = None
        self._gateway: asyncio.Future | None = None
        self._ready = False
        self._closed = False

    def _mark_closed(self) -> None:
        self._closed = True
        self._ready = False

    def event(self, coro):
        self.handlers[coro.__name__] = coro
        return coro

    def is_ready(self) -> bool:
        return self._ready

    def is_closed(self) -> bool:
        return self._closed

    async def connect(self, *, reconnect: bool = True) -> None:
        self.connect_kwargs = {"reconnect": reconnect}
        self._gateway = asyncio.get_running_loop().create_future()
        await self._gateway

    async def fire_ready(self) -> None:
        self._ready = True
        await self.handlers["on_ready"]()

    async def drop(self, exc: BaseException) -> None:
        self._ready = False
        await self.handlers["on_disconnect"]()
        self._gateway.set_exception(exc)

    def close_cleanly(self) -> None:
        self._ready = False
        self._gateway.set_result(None)


def _wait_for(gate: asyncio.Event):
    async def wait(*args, **kwargs) -> None:
        await gate.wait()

    return wait


class ClientFactory:
    """Builds FakeClients; ``login_errors`` are consumed one per client.

    Setting ``login_gate`` makes the next client's login block on that event.
    """

    def __init__(self, login_errors: list | None = None) -> None:
        self.clients: list[FakeClient] = []
        self.login_errors = list(login_errors or [])
        self.default_error: BaseException | None = None
        self.login_gate: asyncio.Event | None = None

    def __call__(self) -> FakeClient:
        error = self.login_errors.pop(0) if self.login_errors else self.default_error
        client = FakeClient(login_error=error)
        if self.login_gate is not None:
            # The next login parks until the test sets the gate
            client.login.side_effect = _wait_for(self.login_gate)
            self.login_gate = None
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakeClient:
        return self.clients[-1]


class FakeTimers:
    """Controllable clock and sleep for the connection manager.

    Every ``sleep()`` parks until :meth:`fire` resolves it; firing advances
    the clock by the slept delay.
    """

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self._sleeps: list[tuple[float, asyncio.Future]] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        fut = asyncio.get_running_loop().create_future()
        self._sleeps.append((delay, fut))
        await fut

    def pending(self) -> list[float]:
        return [delay for delay, fut in self._sleeps if not fut.done()]

    def fire(self, delay: float | None = None) -> float:
        """Resolve the first pending sleep (of ``delay`` if given)."""
        for i, (d, fut) in enumerate(self._sleeps):
            if fut.done() or (delay is not None and d != delay):
                continue
            del self._sleeps[i]
            self.now += d
            fut.set_result(None)
            return d
        raise AssertionError(f"no pending sleep matching {delay!r}: {self.pending()}")


async def settle(rounds: int = 20) -> None:
    """Let scheduled tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        bot_token="token",
        client_id="1234",
        owner_id="42",
        channel_id="555",
        target_note_path="Inbox/Discord",
    )


@pytest.fixture
def notify() -> MagicMock:
    return MagicMock()


@pytest.fixture
def vault_dir(tmp_path):
    root = tmp_path / "vault"
    root.mkdir()
    return root


def make_interaction(
    *,
    type: discord.InteractionType = discord.InteractionType.application_command,
    user_id: int = 42,
    data: dict | None = None,
) -> MagicMock:
    """A MagicMock discord.Interaction with async response methods."""
    interaction = MagicMock(spec=discord.Interaction)
    interaction.id = 1
    interaction.type = type
    interaction.user = MagicMock()
    interaction.user.id = user_id
    interaction.data = data
    interaction.response = MagicMock()
    interaction.response.defer = AsyncMock()
    interaction.response.send_message = AsyncMock()
    interaction.response.autocomplete = AsyncMock()
    interaction.edit_original_response = AsyncMock()
    interaction.followup = MagicMock()
    interaction.followup.send = AsyncMock()
    return interaction


def command_data(name: str, **options) -> dict:
    return {
        "name": name,
        "type": 1,
        "options": [{"name": k, "type": 3, "value": v} for k, v in options.items()],
    }


def autocomplete_data(name: str, option: str, value: str) -> dict:
    return {
        "name": name,
        "type": 1,
        "options": [{"name": option, "type": 3, "value": value, "focused": True}],
    }
