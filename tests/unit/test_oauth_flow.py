"""Unit tests for the authorization controller."""

from __future__ import annotations

import asyncio

import aiohttp
import pytest

from gmail_oauth_flow.exceptions import (
    AuthorizationError,
    AuthorizationInProgressError,
    ConfigurationError,
    MissingAuthorizationCodeError,
    MissingTokenError,
    SessionTimeoutError,
    TokenExchangeError,
    UserCancelledError,
)
from gmail_oauth_flow.models import FailureReason
from gmail_oauth_flow.oauth.flow import GmailOAuthFlow

from tests.conftest import StubExchangeFactory, redirect_uri_from


class RedirectingBrowser:
    """Sends the browser back to the listener with a fixed query string."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.statuses: list[int] = []
        self.task: asyncio.Task | None = None

    def __call__(self, auth_url: str) -> None:
        self.task = asyncio.get_running_loop().create_task(self._visit(redirect_uri_from(auth_url)))

    async def _visit(self, redirect_uri: str) -> None:
        async with aiohttp.ClientSession() as http:
            async with http.get(redirect_uri + self.path) as resp:
                self.statuses.append(resp.status)


def _flow(settings, factory, **kwargs) -> GmailOAuthFlow:
    return GmailOAuthFlow(
        settings.client_id,
        settings.client_secret,
        settings=settings,
        exchange_factory=factory,
        **kwargs,
    )


def _paste(line: str):
    async def read(prompt: str) -> str:
        return line

    return read


class TestGmailOAuthFlow:
    """Test suite for GmailOAuthFlow class."""

    def test_credentials_from_settings(self, settings) -> None:
        """Test that credentials are resolved from settings when not passed."""
        flow = GmailOAuthFlow(settings=settings)

        assert flow.credentials.client_id == settings.client_id
        assert flow.browser_opener is None

    def test_default_browser_opener_when_enabled(self, settings) -> None:
        """Test that the platform browser is used when enabled."""
        from gmail_oauth_flow.oauth.browser import open_browser

        flow = GmailOAuthFlow(settings=settings.model_copy(update={"open_browser": True}))

        assert flow.browser_opener is open_browser

    def test_partial_credentials_raise(self, settings) -> None:
        """Test that a client id without a secret is rejected."""
        with pytest.raises(ConfigurationError):
            GmailOAuthFlow("only-id", None, settings=settings)

    @pytest.mark.asyncio
    async def test_authorize_returns_refresh_token(self, settings, exchange_factory) -> None:
        """Test that the automated flow returns the refresh token."""
        browser = RedirectingBrowser("/?code=ABC")
        flow = _flow(settings, exchange_factory, browser_opener=browser)

        token = await flow.authorize(False)

        assert token == "RT1"
        assert exchange_factory.clients[0].codes == ["ABC"]

    @pytest.mark.asyncio
    async def test_each_attempt_builds_a_new_exchange_client(self, settings, exchange_factory) -> None:
        """Test that every attempt gets its own exchange client."""
        flow = _flow(settings, exchange_factory, browser_opener=RedirectingBrowser("/?code=ABC"))

        await flow.authorize()
        await flow.authorize()

        assert len(exchange_factory.clients) == 2
        assert exchange_factory.clients[0] is not exchange_factory.clients[1]

    @pytest.mark.asyncio
    async def test_provider_error_is_raised_verbatim(self, settings, exchange_factory) -> None:
        """Test that the provider error is raised as the message."""
        flow = _flow(settings, exchange_factory, browser_opener=RedirectingBrowser("/?error=access_denied"))

        with pytest.raises(UserCancelledError) as excinfo:
            await flow.authorize(False)

        assert str(excinfo.value) == "access_denied"
        assert excinfo.value.reason is FailureReason.USER_CANCELLED

    @pytest.mark.asyncio
    async def test_missing_code_is_raised(self, settings, exchange_factory) -> None:
        """Test that a callback without a code raises and gets a 400."""
        browser = RedirectingBrowser("/")
        flow = _flow(settings, exchange_factory, browser_opener=browser)

        with pytest.raises(MissingAuthorizationCodeError, match="^No authorization code$"):
            await flow.authorize(False)

        await browser.task
        assert browser.statuses == [400]

    @pytest.mark.asyncio
    async def test_exchange_failure_is_raised(self, settings) -> None:
        """Test that an exchange failure raises TokenExchangeError."""
        factory = StubExchangeFactory(error=RuntimeError("invalid_grant"))
        flow = _flow(settings, factory, browser_opener=RedirectingBrowser("/?code=ABC"))

        with pytest.raises(TokenExchangeError, match="invalid_grant"):
            await flow.authorize(False)

    @pytest.mark.asyncio
    async def test_timeout_is_raised(self, settings, exchange_factory) -> None:
        """Test that a timeout raises SessionTimeoutError."""
        settings = settings.model_copy(update={"timeout_seconds": 0.05})
        flow = _flow(settings, exchange_factory)

        with pytest.raises(SessionTimeoutError, match="^Authorization timed out$"):
            await flow.authorize(False)

    @pytest.mark.asyncio
    async def test_timeout_during_exchange_is_raised(self, settings) -> None:
        """Test that a timeout wins over an exchange that has not finished."""
        settings = settings.model_copy(update={"timeout_seconds": 0.2})
        factory = StubExchangeFactory(tokens={"refresh_token": "RT1"}, delay=5.0)
        browser = RedirectingBrowser("/?code=ABC")
        flow = _flow(settings, factory, browser_opener=browser)

        with pytest.raises(SessionTimeoutError, match="^Authorization timed out$"):
            await asyncio.wait_for(flow.authorize(), timeout=2.0)

        await browser.task
        assert browser.statuses == [410]

    @pytest.mark.asyncio
    async def test_missing_refresh_token_is_distinguishable(self, settings) -> None:
        """Test that a missing refresh token raises MissingTokenError."""
        factory = StubExchangeFactory(tokens={"access_token": "AT1"})
        flow = _flow(settings, factory, browser_opener=RedirectingBrowser("/?code=ABC"))

        with pytest.raises(MissingTokenError, match="^No refresh token received$"):
            await flow.authorize(False)

    @pytest.mark.asyncio
    async def test_manual_flow_without_refresh_token(self, settings) -> None:
        """Test that the manual flow reports a missing refresh token."""
        factory = StubExchangeFactory(tokens={"access_token": "AT1"})
        flow = _flow(settings, factory, line_reader=_paste("http://localhost:1/?code=XYZ"))

        with pytest.raises(MissingTokenError, match="^No refresh token received$"):
            await flow.authorize(True)

        assert factory.clients[0].redirect_uri == "http://localhost:1"
        assert factory.clients[0].codes == ["XYZ"]

    @pytest.mark.asyncio
    async def test_manual_flow_returns_refresh_token(self, settings, exchange_factory) -> None:
        """Test that the manual flow returns the refresh token."""
        flow = _flow(settings, exchange_factory, line_reader=_paste("http://localhost:1/?code=XYZ"))

        assert await flow.authorize(manual=True) == "RT1"

    @pytest.mark.asyncio
    async def test_manual_flow_without_code(self, settings, exchange_factory) -> None:
        """Test that the manual flow fails on a URL without a code."""
        flow = _flow(settings, exchange_factory, line_reader=_paste("http://localhost:1/"))

        with pytest.raises(MissingAuthorizationCodeError, match="No authorization code found in URL"):
            await flow.authorize(manual=True)

    @pytest.mark.asyncio
    async def test_concurrent_attempt_is_rejected(self, settings, exchange_factory) -> None:
        """Test that a second attempt while one is running is rejected."""
        settings = settings.model_copy(update={"timeout_seconds": 0.2})
        flow = _flow(settings, exchange_factory)

        first = asyncio.create_task(flow.authorize())
        await asyncio.sleep(0)

        with pytest.raises(AuthorizationInProgressError):
            await flow.authorize()

        with pytest.raises(SessionTimeoutError):
            await first

        # Once the first attempt is over a new one may start.
        flow.browser_opener = RedirectingBrowser("/?code=ABC")
        assert await flow.authorize() == "RT1"

    @pytest.mark.asyncio
    async def test_failures_share_a_base_class(self, settings, exchange_factory) -> None:
        """Test that failures can be caught as AuthorizationError."""
        settings = settings.model_copy(update={"timeout_seconds": 0.05})
        flow = _flow(settings, exchange_factory)

        with pytest.raises(AuthorizationError):
            await flow.authorize()
