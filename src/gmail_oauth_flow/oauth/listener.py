"""Local callback listener for the automated authorization flow.

A session binds an aiohttp listener to an ephemeral loopback port, uses
``http://localhost:<port>`` as the redirect URI and waits for Google to send
the browser back. Three triggers race to end the session:

- a request to ``/`` carrying ``code`` or ``error``
- the wall-clock timeout
- the listener failing to bind

Only the first trigger to fire moves the session out of ``LISTENING``. It
cancels the timer and closes the listener, and a token exchange still in
flight is abandoned. Later triggers are no-ops.
"""

from __future__ import annotations

import asyncio
import html
from typing import Any, Callable, Optional

import structlog
from aiohttp import web

from gmail_oauth_flow.config import Settings
from gmail_oauth_flow.models import AuthResult, ClientCredentials, FailureReason, SessionState
from gmail_oauth_flow.oauth.client import ExchangeClientFactory, TokenExchangeClient

logger = structlog.get_logger()

CANCELLED_PAGE = "<html><body><h1>Authorization cancelled</h1></body></html>"
NO_CODE_PAGE = "<html><body><h1>No authorization code</h1></body></html>"
SUCCESS_PAGE = "<html><body><h1>Success!</h1><p>You can close this window.</p></body></html>"


def error_page(message: str) -> str:
    return f"<html><body><h1>Error</h1><p>{html.escape(message)}</p></body></html>"


def _html(status: int, body: str) -> web.Response:
    return web.Response(status=status, text=body, content_type="text/html")


class CallbackSession:
    """One automated authorization attempt.

    The session owns its listener and timer. ``run()`` resolves with exactly
    one ``AuthResult`` and always leaves both released.
    """

    def __init__(
        self,
        credentials: ClientCredentials,
        settings: Settings,
        exchange_factory: ExchangeClientFactory,
        browser_opener: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.credentials = credentials
        self.settings = settings
        self.exchange_factory = exchange_factory
        self.browser_opener = browser_opener

        self.state = SessionState.STARTING
        self.redirect_uri: Optional[str] = None
        self.result: Optional[AuthResult] = None

        self._exchange: Optional[TokenExchangeClient] = None
        self._exchange_tasks: set[asyncio.Future[Any]] = set()
        self._runner: Optional[web.AppRunner] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._closing: Optional[asyncio.Future[None]] = None
        self._outcome: Optional[asyncio.Future[AuthResult]] = None

    async def run(self) -> AuthResult:
        """Start listening and wait for the first terminal trigger."""
        loop = asyncio.get_running_loop()
        self._outcome = loop.create_future()
        try:
            await self._start(loop)
            return await self._outcome
        finally:
            self.cleanup()
            if self._closing is not None:
                await self._closing

    async def _start(self, loop: asyncio.AbstractEventLoop) -> None:
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self._handle_request)
        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        self._runner = runner

        site = web.TCPSite(runner, self.settings.listen_host, 0)
        try:
            await site.start()
        except OSError as exc:
            message = str(exc) or exc.__class__.__name__
            logger.error(
                "callback_listener_bind_failed",
                host=self.settings.listen_host,
                error=message,
            )
            self._finish(
                SessionState.BIND_FAILED,
                AuthResult.failed(FailureReason.LISTENER_BIND_FAILED, message),
            )
            return

        port = runner.addresses[0][1]
        self.redirect_uri = f"http://{self.settings.redirect_host}:{port}"
        self._exchange = self.exchange_factory(self.credentials, self.redirect_uri, self.settings)
        auth_url = self._exchange.authorization_url()

        self.state = SessionState.LISTENING
        logger.info(
            "callback_listener_started",
            redirect_uri=self.redirect_uri,
            timeout_seconds=self.settings.timeout_seconds,
        )

        print("Opening browser for Gmail authorization...")
        print("If browser doesn't open, visit this URL:")
        print(auth_url)
        if self.browser_opener is not None:
            self._launch_browser(self.browser_opener, auth_url)

        self._timer = loop.call_later(self.settings.timeout_seconds, self._on_timeout)

    def _launch_browser(self, opener: Callable[[str], None], url: str) -> None:
        try:
            opener(url)
        except Exception as exc:  # noqa: BLE001
            logger.debug("browser_launch_failed", error=str(exc))

    async def _handle_request(self, request: web.Request) -> web.Response:
        exchange = self._exchange
        if request.path != "/" or self.state is not SessionState.LISTENING or exchange is None:
            return web.Response(status=404)

        error = request.query.get("error")
        if error:
            logger.warning("authorization_cancelled", error=error)
            self._finish(
                SessionState.COMPLETED,
                AuthResult.failed(FailureReason.USER_CANCELLED, error),
            )
            return _html(200, CANCELLED_PAGE)

        code = request.query.get("code")
        if not code:
            logger.warning("authorization_code_missing")
            self._finish(
                SessionState.COMPLETED,
                AuthResult.failed(FailureReason.MISSING_CODE, "No authorization code"),
            )
            return _html(400, NO_CODE_PAGE)

        # cleanup() cancels this task if another trigger ends the session first.
        task = asyncio.ensure_future(exchange.exchange_code_for_tokens(code))
        self._exchange_tasks.add(task)
        try:
            await asyncio.wait({task})
        finally:
            self._exchange_tasks.discard(task)

        if task.cancelled():
            logger.warning("token_exchange_abandoned", state=self.state.value)
            return self._session_ended_response()

        exc = task.exception()
        if exc is not None:
            message = str(exc) or exc.__class__.__name__
            logger.error("token_exchange_failed", error=message, exc_info=exc)
            if not self._finish(
                SessionState.COMPLETED,
                AuthResult.failed(FailureReason.TOKEN_EXCHANGE_FAILED, message),
            ):
                return self._session_ended_response()
            return _html(500, error_page(message))

        tokens = task.result()
        if not self._finish(SessionState.COMPLETED, AuthResult.succeeded(tokens.get("refresh_token"))):
            return self._session_ended_response()
        return _html(200, SUCCESS_PAGE)

    def _session_ended_response(self) -> web.Response:
        reason = self.result.error if self.result is not None and self.result.error else self.state.value
        return _html(410, error_page(f"This authorization session has already ended: {reason}"))

    def _on_timeout(self) -> None:
        self._timer = None
        if self.state.is_terminal:
            return
        logger.warning("authorization_timed_out", timeout_seconds=self.settings.timeout_seconds)
        print(f"Authorization timed out after {self.settings.timeout_seconds:g} seconds")
        self._finish(
            SessionState.TIMED_OUT,
            AuthResult.failed(FailureReason.TIMED_OUT, "Authorization timed out"),
        )

    def _finish(self, state: SessionState, result: AuthResult) -> bool:
        """Move to a terminal state. Returns False if the session already ended."""
        if self.state.is_terminal:
            logger.debug("session_trigger_ignored", state=self.state.value, trigger=state.value)
            return False

        self.state = state
        self.result = result
        self.cleanup()
        if self._outcome is not None and not self._outcome.done():
            self._outcome.set_result(result)
        return True

    def cleanup(self) -> None:
        """Cancel the timer, abandon any in-flight exchange and close the listener.

        Safe to call repeatedly.
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for task in self._exchange_tasks:
            task.cancel()
        if self._runner is not None:
            runner, self._runner = self._runner, None
            self._closing = asyncio.ensure_future(runner.cleanup())
            logger.debug("callback_listener_closing", redirect_uri=self.redirect_uri)
