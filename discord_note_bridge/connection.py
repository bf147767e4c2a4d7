"""Connection lifecycle for the Discord gateway session.

``ConnectionManager`` owns the single :class:`~discord_note_bridge.bot.NoteBridgeClient`
and every timer around it:

- the gateway task (``client.connect(reconnect=False)``), so every drop
  comes back to the manager instead of being retried inside discord.py,
- one pending reconnect timer at most, armed by :meth:`schedule_reconnect`,
- a stability timer that resets the attempt counter once a session has
  stayed ready long enough,
- a periodic health check (``discord.ext.tasks`` loop).

State lives on the instance and is only touched from the event loop, so no
locks are needed apart from the login lock that keeps two logins from
overlapping across an ``await``.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import discord
from discord.ext import tasks

from .backoff import ReconnectPolicy, classify_error
from .bot import NoteBridgeClient
from .utils.logger import log_notice

if TYPE_CHECKING:
    from .commands.dispatcher import CommandDispatcher
    from .config import Settings

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL = 5 * 60
DEFAULT_GRACE_PERIOD = 30.0

STATUS_NO_TOKEN = "Discord: No Token"
STATUS_CONNECTING = "Discord: Connecting..."
STATUS_CONNECTED = "Discord: Connected"
STATUS_DISCONNECTED = "Discord: Disconnected"
STATUS_RECONNECTING = "Discord: Reconnecting..."
STATUS_LOGIN_FAILED = "Discord: Login Failed"
STATUS_MAX_ATTEMPTS = "Discord: Max Reconnect Attempts Reached"


class ConnectionState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    READY = "ready"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


@dataclass
class ReconnectState:
    """Backoff counters. Replaced wholesale on reset."""

    attempts: int = 0
    last_attempt_time: float = 0.0
    last_delay: float = 0.0
    last_disconnect_time: float | None = None


@dataclass
class HostCallbacks:
    """Hooks the manager calls back into the hosting process."""

    on_message_received: Callable[[str], Awaitable[None]]
    on_status_update: Callable[[str], None]
    notify: Callable[[str], None] = log_notice


class ConnectionManager:
    """Keeps at most one live gateway session and recovers it after drops."""

    def __init__(
        self,
        settings: Settings,
        callbacks: HostCallbacks,
        *,
        policy: ReconnectPolicy | None = None,
        client_factory: Callable[[], Any] = NoteBridgeClient,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        clock: Callable[[], float] = time.monotonic,
        rand: Callable[[], float] = random.random,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.callbacks = callbacks
        self.policy = policy or ReconnectPolicy()
        self.check_interval = check_interval
        self.grace_period = grace_period
        # Set after construction; the dispatcher needs this manager for lookups
        self.dispatcher: CommandDispatcher | None = None

        self.state = ConnectionState.IDLE
        self.failure_reason: str | None = None
        self.reconnect = ReconnectState()

        self._client_factory = client_factory
        self._clock = clock
        self._rand = rand
        self._sleep = sleep
        self._client: Any = None
        self._session_started_at = 0.0
        self._login_lock = asyncio.Lock()
        self._connect_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._stable_task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def session(self) -> Any:
        """The current client, or None."""
        return self._client

    @property
    def is_ready(self) -> bool:
        return self._client is not None and self._client.is_ready()

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def _session_alive(self) -> bool:
        if self._login_lock.locked():
            return True
        return self._connect_task is not None and not self._connect_task.done()

    def _set_state(
        self, state: ConnectionState, label: str, *, reason: str | None = None
    ) -> None:
        self.state = state
        self.failure_reason = reason if state is ConnectionState.FAILED else None
        logger.debug("Connection state -> %s (%s)", state.value, label)
        try:
            self.callbacks.on_status_update(label)
        except Exception:
            logger.exception("Status update callback failed")

    def _notify(self, text: str) -> None:
        try:
            self.callbacks.notify(text)
        except Exception:
            logger.exception("Notification callback failed")

    def update_settings(self, settings: Settings) -> None:
        self.settings = settings

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Start a session unless one is already up or starting."""
        if self.is_ready or self._session_alive():
            logger.info("Discord client already running")
            return

        if not self.settings.bot_token:
            logger.warning("Discord bot token is not configured")
            self._notify("Discord bot token is not configured.")
            self._set_state(ConnectionState.IDLE, STATUS_NO_TOKEN)
            return

        await self.create_session()
        self._start_health_checks()

    async def create_session(self) -> None:
        """Replace any existing session with a freshly logged-in one."""
        async with self._login_lock:
            await self._close_session()

            if self.reconnect.attempts:
                self._set_state(ConnectionState.RECONNECTING, STATUS_RECONNECTING)
            else:
                self._set_state(ConnectionState.CONNECTING, STATUS_CONNECTING)

            self._session_started_at = self._clock()
            client = None
            try:
                client = self._client_factory()
                self._client = client
                self._attach_handlers(client)
                await client.login(self.settings.bot_token)
            except Exception as exc:
                await self._handle_failure(exc, client, phase="login")
                return

            if client is not self._client:
                # Torn down by destroy()/force_reconnect() while logging in
                await client.close()
                return

            self._connect_task = asyncio.create_task(
                self._run_gateway(client), name="note-bridge-gateway"
            )

    def _attach_handlers(self, client: Any) -> None:
        """Register this session's event handlers; they ignore stale clients."""

        async def on_ready() -> None:
            if client is not self._client:
                return
            tag = client.tag
            logger.info("Logged in as %s", tag)
            self._notify(f"Logged in as {tag}!")
            self._set_state(ConnectionState.READY, f"{STATUS_CONNECTED} ({tag})")
            self._arm_stability_timer(client)
            if self.dispatcher is not None:
                await self.dispatcher.register_commands(client)

        async def on_disconnect() -> None:
            if client is not self._client:
                return
            self.reconnect.last_disconnect_time = self._clock()
            self._cancel_stability_timer()
            logger.warning("Discord client disconnected")

        async def on_message(message: discord.Message) -> None:
            if message.author.bot:
                return
            channel_id = self.settings.channel_id
            if not channel_id or str(message.channel.id) != channel_id:
                return
            logger.info(
                "Message received in channel %s (%d chars)", channel_id, len(message.content)
            )
            await self.callbacks.on_message_received(message.content)

        async def on_interaction(interaction: discord.Interaction) -> None:
            if self.dispatcher is not None:
                await self.dispatcher.handle_interaction(interaction)

        async def on_error(event_method: str, *args: Any, **kwargs: Any) -> None:
            logger.exception("Unhandled exception in %s", event_method)

        for handler in (on_ready, on_disconnect, on_message, on_interaction, on_error):
            client.event(handler)

    async def _run_gateway(self, client: Any) -> None:
        try:
            await client.connect(reconnect=False)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._handle_failure(exc, client, phase="gateway")
            return

        if client is self._client:
            # Clean close (code 1000) that we did not ask for
            logger.warning("Discord gateway closed by the server")
            self.reconnect.last_disconnect_time = self._clock()
            await self._close_session()
            self._set_state(ConnectionState.RECONNECTING, STATUS_DISCONNECTED)
            self.schedule_reconnect()

    async def _handle_failure(self, exc: BaseException, client: Any, *, phase: str) -> None:
        if client is not None and client is not self._client:
            logger.debug("Ignoring %s failure from a replaced session: %r", phase, exc)
            return

        info = classify_error(exc)
        if phase == "login":
            logger.error("Failed to login to Discord (%s): %s", info.kind.value, info.detail)
            self._notify(f"Failed to login to Discord: {info.detail}")
        else:
            self.reconnect.last_disconnect_time = self._clock()
            logger.error("Discord connection lost (%s): %s", info.kind.value, info.detail)
            self._notify(f"Discord connection lost: {info.detail}")

        await self._close_session()

        if not info.kind.retryable:
            self._set_state(ConnectionState.FAILED, STATUS_LOGIN_FAILED, reason=info.detail)
            return

        self.schedule_reconnect(retry_after=info.retry_after)

    # ------------------------------------------------------------------
    # Reconnection
    # ------------------------------------------------------------------

    def schedule_reconnect(self, *, retry_after: float | None = None) -> bool:
        """Arm the reconnect timer. Returns False if nothing was scheduled."""
        if self.reconnect_pending:
            logger.debug("Reconnect already scheduled")
            return False

        decision = self.policy.decide(
            self.reconnect.attempts, retry_after=retry_after, rand=self._rand
        )
        if not decision.retry:
            logger.error(
                "Max reconnect attempts (%d) reached; stopping automatic reconnection",
                self.policy.max_attempts,
            )
            self._notify("Max reconnect attempts reached. Use force reconnect to try again.")
            self._set_state(ConnectionState.FAILED, STATUS_MAX_ATTEMPTS, reason=decision.reason)
            return False

        now = self._clock()
        if now - self.reconnect.last_attempt_time < self.reconnect.last_delay:
            logger.debug("Reconnect attempted too recently; skipping")
            return False

        self.reconnect.attempts += 1
        self.reconnect.last_attempt_time = now
        self.reconnect.last_delay = decision.delay
        logger.info(
            "Reconnecting to Discord in %.1fs (attempt %d/%d)",
            decision.delay,
            self.reconnect.attempts,
            self.policy.max_attempts,
        )
        self._notify("Attempting to reinitialize Discord client...")
        self._set_state(ConnectionState.RECONNECTING, STATUS_RECONNECTING)
        self._reconnect_task = asyncio.create_task(
            self._reconnect_after(decision.delay), name="note-bridge-reconnect"
        )
        return True

    async def _reconnect_after(self, delay: float) -> None:
        await self._sleep(delay)
        # Cleared first so a failed login can arm the next attempt
        self._reconnect_task = None
        await self.create_session()

    def reset_reconnection_state(self) -> None:
        self.reconnect = ReconnectState()

    def _arm_stability_timer(self, client: Any) -> None:
        self._cancel_stability_timer()
        self._stable_task = asyncio.create_task(
            self._wait_until_stable(client), name="note-bridge-stable"
        )

    def _cancel_stability_timer(self) -> None:
        if self._stable_task is not None and not self._stable_task.done():
            self._stable_task.cancel()
        self._stable_task = None

    async def _wait_until_stable(self, client: Any) -> None:
        await self._sleep(self.policy.stable_seconds)
        if client is self._client and client.is_ready():
            if self.reconnect.attempts:
                logger.info(
                    "Connection stable for %.0fs; resetting reconnect attempts",
                    self.policy.stable_seconds,
                )
            self.reset_reconnection_state()

    # ------------------------------------------------------------------
    # Health checks
    # ------------------------------------------------------------------

    def _start_health_checks(self) -> None:
        if self._health_check.is_running():
            return
        self._health_check.change_interval(seconds=self.check_interval)
        self._health_check.start()

    @tasks.loop(seconds=DEFAULT_CHECK_INTERVAL)
    async def _health_check(self) -> None:
        self.check_connection()

    def check_connection(self) -> bool:
        """Schedule a reconnect if the session is down past the grace period.

        Returns True if a reconnect was scheduled.
        """
        if not self.settings.bot_token or self.state is ConnectionState.FAILED:
            return False
        if self._login_lock.locked() or self.reconnect_pending or self.is_ready:
            return False

        since = self.reconnect.last_disconnect_time
        if since is None:
            since = self._session_started_at
        if self._clock() - since < self.grace_period:
            return False

        logger.warning("Discord session is not ready; scheduling reconnect")
        return self.schedule_reconnect()

    # ------------------------------------------------------------------
    # Manual control and teardown
    # ------------------------------------------------------------------

    async def force_reconnect(self) -> None:
        """Drop the session and all backoff state, then start over."""
        logger.info("Manual reconnect requested")
        self._notify("Attempting to reinitialize Discord client...")
        # A login in flight would otherwise look like a live session to initialize()
        async with self._login_lock:
            self._cancel_reconnect_timer()
            self.reset_reconnection_state()
            await self._close_session()
        await self.initialize()

    def _cancel_reconnect_timer(self) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        self._reconnect_task = None

    async def _close_session(self) -> None:
        self._cancel_stability_timer()

        task, self._connect_task = self._connect_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

        client, self._client = self._client, None
        if client is not None and not client.is_closed():
            await client.close()
            logger.info("Discord client destroyed")

    async def destroy(self) -> None:
        """Cancel every timer and close the session. Safe to call repeatedly."""
        self._health_check.cancel()
        self._cancel_reconnect_timer()
        had_session = self._client is not None
        await self._close_session()
        if had_session or self.state is not ConnectionState.IDLE:
            self._set_state(ConnectionState.IDLE, STATUS_DISCONNECTED)

    async def get_channel(self, channel_id: str) -> discord.TextChannel | None:
        """Look up a text channel on the live session."""
        client = self._client
        if client is None or not client.is_ready():
            return None
        if not channel_id.isdigit():
            return None
        try:
            return await client.fetch_text_channel(int(channel_id))
        except discord.HTTPException:
            logger.exception("Failed to fetch channel %s", channel_id)
            return None
