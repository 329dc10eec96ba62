"""Tests for net/retry.py module.

These tests use mocked HTTP responses to test retry bounds,
short-circuiting, timeouts and argument validation.
"""

import asyncio
import logging

import httpx
import pytest
import respx

from qorecss_deploy.config import Settings
from qorecss_deploy.net.retry import (
    InvalidArgumentError,
    NetworkError,
    RequestTimeoutError,
    RetryClient,
    fetch_with_retry,
    validate_attempts,
)

URL = "https://example.com/core.css"


def _fetch(settings: Settings, *args, **kwargs) -> httpx.Response:
    async def go() -> httpx.Response:
        async with RetryClient(settings) as client:
            return await client.fetch_with_retry(*args, **kwargs)

    return asyncio.run(go())


class TestValidateAttempts:
    """Tests for validate_attempts function."""

    def test_accepts_positive_int(self):
        assert validate_attempts(1) == 1
        assert validate_attempts(5) == 5

    @pytest.mark.parametrize("value", [0, -1])
    def test_rejects_below_one(self, value):
        with pytest.raises(InvalidArgumentError) as exc_info:
            validate_attempts(value)
        assert exc_info.value.code == "invalid_argument"

    @pytest.mark.parametrize("value", [2.5, "3", None, True])
    def test_rejects_non_integers(self, value):
        with pytest.raises(InvalidArgumentError):
            validate_attempts(value)


class TestBackoff:
    """Tests for the delays between attempts."""

    @respx.mock
    def test_delays_double(self, tmp_path):
        """Each wait should be twice the previous one, starting at the base."""
        settings = Settings(work_dir=tmp_path, backoff_base=0.5)
        respx.get(URL).mock(side_effect=httpx.ConnectError("refused"))
        delays: list[float] = []

        async def record(seconds: float) -> None:
            delays.append(seconds)

        async def go() -> None:
            async with RetryClient(settings, sleep=record) as client:
                await client.fetch_with_retry(URL, max_attempts=4)

        with pytest.raises(NetworkError):
            asyncio.run(go())

        assert delays == pytest.approx([0.5, 1.0, 2.0])

    @respx.mock
    def test_no_wait_after_last_attempt(self, tmp_path):
        settings = Settings(work_dir=tmp_path, backoff_base=0.5)
        respx.get(URL).mock(side_effect=httpx.ConnectError("refused"))
        delays: list[float] = []

        async def record(seconds: float) -> None:
            delays.append(seconds)

        async def go() -> None:
            async with RetryClient(settings, sleep=record) as client:
                await client.fetch_with_retry(URL, max_attempts=3)

        with pytest.raises(NetworkError):
            asyncio.run(go())

        assert delays == pytest.approx([0.5, 1.0])


class TestFetchWithRetry:
    """Tests for RetryClient.fetch_with_retry."""

    @respx.mock
    def test_returns_response_on_first_try(self, online_settings):
        """A successful response should be returned without retrying."""
        route = respx.get(URL).mock(return_value=httpx.Response(200, text="ok"))

        response = _fetch(online_settings, URL)

        assert response.status_code == 200
        assert response.text == "ok"
        assert route.call_count == 1

    @respx.mock
    def test_error_status_is_not_retried(self, online_settings):
        """4xx/5xx responses should be handed back for inspection."""
        route = respx.get(URL).mock(return_value=httpx.Response(503))

        response = _fetch(online_settings, URL, max_attempts=3)

        assert response.status_code == 503
        assert route.call_count == 1

    @respx.mock
    def test_retries_until_success(self, online_settings):
        """K failures then success should take exactly K+1 attempts."""
        route = respx.get(URL).mock(
            side_effect=[
                httpx.ConnectError("refused"),
                httpx.ReadError("reset"),
                httpx.Response(200, text="ok"),
            ]
        )

        response = _fetch(online_settings, URL, max_attempts=5)

        assert response.status_code == 200
        assert route.call_count == 3

    @respx.mock
    def test_exhausts_attempts(self, online_settings):
        """A permanently failing transport should be tried exactly N times."""
        route = respx.get(URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(NetworkError) as exc_info:
            _fetch(online_settings, URL, max_attempts=4)

        assert route.call_count == 4
        assert exc_info.value.attempts == 4
        assert exc_info.value.url == URL
        assert exc_info.value.code == "network_error"
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @respx.mock
    def test_timeout_surfaces_as_timeout_error(self, online_settings):
        """A final timeout should raise RequestTimeoutError."""
        route = respx.get(URL).mock(side_effect=httpx.ConnectTimeout("slow"))

        with pytest.raises(RequestTimeoutError) as exc_info:
            _fetch(online_settings, URL, max_attempts=2)

        assert route.call_count == 2
        assert exc_info.value.code == "timeout"
        assert isinstance(exc_info.value, NetworkError)

    @respx.mock
    def test_default_attempts_from_settings(self, tmp_path):
        """Without max_attempts the settings default should apply."""
        settings = Settings(work_dir=tmp_path, backoff_base=0, max_attempts=2)
        route = respx.get(URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(NetworkError):
            _fetch(settings, URL)

        assert route.call_count == 2

    @respx.mock
    def test_zero_attempts_rejected_before_request(self, online_settings):
        """Invalid attempt counts should fail before any request."""
        route = respx.get(URL).mock(return_value=httpx.Response(200))

        with pytest.raises(InvalidArgumentError):
            _fetch(online_settings, URL, {}, 0)

        assert route.call_count == 0

    @respx.mock
    def test_default_timeout_applied(self, online_settings):
        """The default 10s timeout should be used when none is given."""
        route = respx.get(URL).mock(return_value=httpx.Response(200))

        _fetch(online_settings, URL)

        timeout = route.calls.last.request.extensions["timeout"]
        assert timeout["read"] == 10.0
        assert timeout["connect"] == 10.0

    @respx.mock
    def test_caller_timeout_wins(self, online_settings):
        """A caller-supplied timeout should override the default."""
        route = respx.get(URL).mock(return_value=httpx.Response(200))

        _fetch(online_settings, URL, {"timeout": 2.5})

        assert route.calls.last.request.extensions["timeout"]["read"] == 2.5

    @respx.mock
    def test_options_are_not_mutated(self, online_settings):
        """The caller's options dict should not gain a timeout key."""
        respx.get(URL).mock(return_value=httpx.Response(200))
        options = {"headers": {"X-Test": "1"}}

        _fetch(online_settings, URL, options)

        assert "timeout" not in options

    @respx.mock
    def test_retries_are_logged(self, online_settings, caplog):
        """Each failed attempt should be logged before retrying."""
        respx.get(URL).mock(
            side_effect=[httpx.ConnectError("refused"), httpx.Response(200)]
        )

        with caplog.at_level(logging.INFO, logger="qorecss_deploy.net.retry"):
            _fetch(online_settings, URL)

        assert "attempt 1/3" in caplog.text
        assert "retrying" in caplog.text


class TestFetchMany:
    """Tests for RetryClient.fetch_many."""

    @respx.mock
    def test_returns_responses_in_order(self, tmp_path):
        """Responses should line up with the requested URLs."""
        settings = Settings(work_dir=tmp_path, backoff_base=0, queue_limit=2)
        urls = [f"https://example.com/{i}" for i in range(5)]
        for i, url in enumerate(urls):
            respx.get(url).mock(return_value=httpx.Response(200 + i))

        async def go():
            async with RetryClient(settings) as client:
                return await client.fetch_many(urls)

        responses = asyncio.run(go())

        assert [r.status_code for r in responses] == [200, 201, 202, 203, 204]


class TestModuleFetchWithRetry:
    """Tests for the module-level fetch_with_retry helper."""

    def test_rejects_zero_attempts(self):
        """fetch_with_retry(url, {}, 0) should raise InvalidArgumentError."""
        with pytest.raises(InvalidArgumentError):
            asyncio.run(fetch_with_retry(URL, {}, 0))

    @respx.mock
    def test_fetches(self, online_settings):
        respx.get(URL).mock(return_value=httpx.Response(204))

        response = asyncio.run(fetch_with_retry(URL, settings=online_settings))

        assert response.status_code == 204
