"""
Tests for candidate probing and the concurrent license URL resolver.
"""

import asyncio

import httpx
import pytest

from conftest import make_transport
from dep_license_report.error_handling import IndeterminateProbeError
from dep_license_report.prober import HypothesisProber, ProbeOutcome, ProbeResult
from dep_license_report.resolver import LicenseUrlResolver, race_until_valid

BASE_URL = "https://github.com/acme/widget/raw/master/"


def head_text(content_type="text/plain; charset=utf-8"):
    return httpx.Response(200, headers={"content-type": content_type})


class TestProbeClassification:
    """Test how a received response is judged."""

    def _response(self, status, content_type="", body=b""):
        request = httpx.Request("HEAD", BASE_URL + "LICENSE")
        return httpx.Response(
            status, headers={"content-type": content_type}, content=body, request=request
        )

    def test_not_found(self):
        result = HypothesisProber.classify("u", self._response(404))
        assert result.outcome is ProbeOutcome.NOT_FOUND
        assert result.reason == "404 Not found"

    def test_other_error_status_is_indeterminate(self):
        result = HypothesisProber.classify("u", self._response(500))
        assert result.outcome is ProbeOutcome.INDETERMINATE
        assert result.is_indeterminate

    def test_plain_text_head_is_valid(self):
        result = HypothesisProber.classify("u", self._response(200, "text/plain"))
        assert result.is_valid
        assert result.actual_url == BASE_URL + "LICENSE"

    def test_html_is_indeterminate(self):
        result = HypothesisProber.classify("u", self._response(200, "text/html"))
        assert result.outcome is ProbeOutcome.INDETERMINATE

    def test_html_body_with_text_content_type_is_rejected(self):
        result = HypothesisProber.classify(
            "u", self._response(200, "text/plain", b"<html><body>login</body></html>")
        )
        assert not result.is_valid

    def test_binary_body_is_rejected(self):
        result = HypothesisProber.classify(
            "u", self._response(200, "application/octet-stream", b"PK\x03\x04\x00\x00")
        )
        assert not result.is_valid


class TestHypothesisProber:
    """Test probes against a mocked network."""

    @pytest.mark.asyncio
    async def test_probe_valid_after_redirect(self):
        """Redirects are followed and the final URL is recorded."""
        final_url = "https://raw.githubusercontent.com/acme/widget/master/LICENSE"
        transport = make_transport(
            {
                ("HEAD", BASE_URL + "LICENSE"): httpx.Response(
                    302, headers={"location": final_url}
                ),
                ("HEAD", final_url): head_text(),
            }
        )
        async with httpx.AsyncClient(transport=transport, follow_redirects=True) as client:
            result = await HypothesisProber(client, timeout=5).probe(BASE_URL + "LICENSE")

        assert result.is_valid
        assert result.url == BASE_URL + "LICENSE"
        assert result.actual_url == final_url

    @pytest.mark.asyncio
    async def test_probe_transport_error(self):
        transport = make_transport(
            {("HEAD", BASE_URL + "LICENSE"): httpx.ConnectError("connection refused")}
        )
        async with httpx.AsyncClient(transport=transport) as client:
            result = await HypothesisProber(client, timeout=5).probe(BASE_URL + "LICENSE")

        assert result.outcome is ProbeOutcome.TRANSPORT_ERROR
        assert result.reason.startswith("HTTP request error:")

    @pytest.mark.asyncio
    async def test_probe_timeout(self):
        async def never_answers(request):
            await asyncio.sleep(10)
            return head_text()

        transport = make_transport({("HEAD", BASE_URL + "LICENSE"): never_answers})
        async with httpx.AsyncClient(transport=transport) as client:
            result = await HypothesisProber(client, timeout=0.05).probe(BASE_URL + "LICENSE")

        assert result.outcome is ProbeOutcome.TIMEOUT
        assert result.is_indeterminate

    @pytest.mark.asyncio
    async def test_probe_aborted(self):
        """Setting the abort event cancels the in-flight request."""
        cancelled = asyncio.Event()

        async def slow(request):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return head_text()

        transport = make_transport({("HEAD", BASE_URL + "LICENSE"): slow})
        abort_event = asyncio.Event()
        async with httpx.AsyncClient(transport=transport) as client:
            probe = asyncio.ensure_future(
                HypothesisProber(client, timeout=5).probe(BASE_URL + "LICENSE", abort_event)
            )
            await asyncio.sleep(0.01)
            abort_event.set()
            result = await asyncio.wait_for(probe, timeout=1)

        assert result.outcome is ProbeOutcome.ABORTED
        assert result.reason == "aborted"
        assert cancelled.is_set()


class TestRaceUntilValid:
    """Test the race combinator on plain coroutines."""

    @pytest.mark.asyncio
    async def test_winner_aborts_siblings(self):
        async def fast(abort_event):
            return "valid"

        async def slow(abort_event):
            await abort_event.wait()
            return "aborted"

        results = await asyncio.wait_for(
            race_until_valid([slow, fast, slow], lambda result: result == "valid"), 1
        )

        assert results == ["aborted", "valid", "aborted"]

    @pytest.mark.asyncio
    async def test_no_winner_waits_for_all(self):
        async def lose(abort_event):
            await asyncio.sleep(0.01)
            return "invalid"

        results = await race_until_valid([lose, lose], lambda result: result == "valid")

        assert results == ["invalid", "invalid"]


class TestLicenseUrlResolver:
    """Test resolution of license URLs under a base URL."""

    @pytest.mark.asyncio
    async def test_candidate_urls(self):
        async with httpx.AsyncClient(transport=make_transport({})) as client:
            resolver = LicenseUrlResolver(HypothesisProber(client, timeout=5))

        assert resolver.candidate_urls(BASE_URL) == [
            BASE_URL + "LICENSE",
            BASE_URL + "LICENSE.txt",
            BASE_URL + "LICENSE.md",
        ]

    @pytest.mark.asyncio
    async def test_first_valid_aborts_slow_siblings(self):
        """A fast valid probe settles the race without waiting on the others."""
        cancelled = []

        def slow_route(name):
            async def slow(request):
                try:
                    await asyncio.sleep(10)
                except asyncio.CancelledError:
                    cancelled.append(name)
                    raise
                return head_text()

            return slow

        transport = make_transport(
            {
                ("HEAD", BASE_URL + "LICENSE"): slow_route("LICENSE"),
                ("HEAD", BASE_URL + "LICENSE.txt"): head_text(),
                ("HEAD", BASE_URL + "LICENSE.md"): slow_route("LICENSE.md"),
            }
        )
        async with httpx.AsyncClient(transport=transport) as client:
            resolver = LicenseUrlResolver(HypothesisProber(client, timeout=5))
            valid = await asyncio.wait_for(resolver.resolve_license_url(BASE_URL), 2)

        assert [result.url for result in valid] == [BASE_URL + "LICENSE.txt"]
        assert sorted(cancelled) == ["LICENSE", "LICENSE.md"]

    @pytest.mark.asyncio
    async def test_all_not_found_returns_empty(self):
        async with httpx.AsyncClient(transport=make_transport({})) as client:
            resolver = LicenseUrlResolver(HypothesisProber(client, timeout=5))
            assert await resolver.resolve_license_url(BASE_URL) == []

    @pytest.mark.asyncio
    async def test_indeterminate_without_valid_raises(self):
        transport = make_transport(
            {("HEAD", BASE_URL + "LICENSE.md"): httpx.Response(500)}
        )
        async with httpx.AsyncClient(transport=transport) as client:
            resolver = LicenseUrlResolver(HypothesisProber(client, timeout=5))
            with pytest.raises(IndeterminateProbeError) as exc_info:
                await resolver.resolve_license_url(BASE_URL)

        assert exc_info.value.base_url == BASE_URL
        assert any("LICENSE.md" in reason for reason in exc_info.value.reasons)

    @pytest.mark.asyncio
    async def test_valid_wins_over_indeterminate(self):
        transport = make_transport(
            {
                ("HEAD", BASE_URL + "LICENSE"): httpx.Response(500),
                ("HEAD", BASE_URL + "LICENSE.md"): head_text("text/markdown"),
            }
        )
        async with httpx.AsyncClient(transport=transport) as client:
            resolver = LicenseUrlResolver(HypothesisProber(client, timeout=5))
            valid = await resolver.resolve_license_url(BASE_URL)

        assert [result.url for result in valid] == [BASE_URL + "LICENSE.md"]

    @pytest.mark.asyncio
    async def test_custom_candidate_filenames(self):
        requests = []
        transport = make_transport(
            {("HEAD", BASE_URL + "COPYING"): head_text()}, requests
        )
        async with httpx.AsyncClient(transport=transport) as client:
            resolver = LicenseUrlResolver(
                HypothesisProber(client, timeout=5), ["COPYING", "UNLICENSE"]
            )
            valid = await resolver.resolve_license_url(BASE_URL)

        assert valid == [
            ProbeResult(
                url=BASE_URL + "COPYING",
                outcome=ProbeOutcome.VALID,
                actual_url=BASE_URL + "COPYING",
            )
        ]
        assert all(method == "HEAD" for method, _ in requests)
