"""Tests for the async request pipeline."""

import asyncio
import json

import httpx
import pytest

from mangoclient.http.errors import (
    MangoDecodeError,
    MangoError,
    MangoHTTPError,
    MangoTransportError,
)
from mangoclient.http.pipeline import RequestPipeline
from mangoclient.http.request import DataType, RequestDescriptor
from mangoclient.http.session import Session

BASE = "http://localhost:8080"


def make_pipeline(**session_kwargs) -> RequestPipeline:
    return RequestPipeline(BASE, Session(**session_kwargs))


class TestLifecycle:
    """Tests for opening and closing the connection pool."""

    @pytest.mark.asyncio
    async def test_context_manager_lifecycle(self, respx_mock):
        """Pipeline should open the pool on enter and close it on exit."""
        respx_mock.get(f"{BASE}/rest/v1/users/current").mock(
            return_value=httpx.Response(200, json={"username": "admin"})
        )

        async with make_pipeline() as pipeline:
            assert pipeline._client is not None
            response = await pipeline.execute(RequestDescriptor(path="/rest/v1/users/current"))
            assert response.data == {"username": "admin"}

        assert pipeline._client is None

    @pytest.mark.asyncio
    async def test_raises_if_used_without_context_manager(self):
        pipeline = make_pipeline()

        with pytest.raises(RuntimeError, match="not initialized"):
            await pipeline.execute(RequestDescriptor(path="/test"))


class TestRequestBuilding:
    """Tests for what goes out on the wire."""

    @pytest.mark.asyncio
    async def test_no_body_without_data_or_files(self, respx_mock):
        """Without data or uploads, no body and no Content-Type are sent."""
        route = respx_mock.post(f"{BASE}/rest/v2/logout").mock(
            return_value=httpx.Response(200)
        )

        async with make_pipeline() as pipeline:
            await pipeline.execute(RequestDescriptor(path="/rest/v2/logout", method="POST"))

        request = route.calls.last.request
        assert request.content == b""
        assert "content-type" not in request.headers

    @pytest.mark.asyncio
    async def test_json_body(self, respx_mock):
        """JSON bodies set Content-Type and the byte Content-Length."""
        route = respx_mock.post(f"{BASE}/rest/v3/data-sources").mock(
            return_value=httpx.Response(201, json={"id": 1})
        )
        payload = {"name": "Kessel Süd", "enabled": False}

        async with make_pipeline() as pipeline:
            await pipeline.execute(
                RequestDescriptor(path="/rest/v3/data-sources", method="POST", data=payload)
            )

        request = route.calls.last.request
        assert request.headers["content-type"] == "application/json"
        assert int(request.headers["content-length"]) == len(request.content)
        assert json.loads(request.content) == payload

    @pytest.mark.asyncio
    async def test_accept_header(self, respx_mock):
        route = respx_mock.get(f"{BASE}/test").mock(return_value=httpx.Response(200))

        async with make_pipeline() as pipeline:
            await pipeline.execute(RequestDescriptor(path="/test"))

        assert route.calls.last.request.headers["accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_query_params_appended(self, respx_mock):
        route = respx_mock.get(f"{BASE}/rest/v1/data-sources/copy/DS_1").mock(
            return_value=httpx.Response(200, json={})
        )

        async with make_pipeline() as pipeline:
            await pipeline.execute(RequestDescriptor(
                path="/rest/v1/data-sources/copy/DS_1",
                params={"copyXid": "DS_2", "copyName": "Copy name"},
            ))

        params = route.calls.last.request.url.params
        assert params["copyXid"] == "DS_2"
        assert params["copyName"] == "Copy name"

    @pytest.mark.asyncio
    async def test_rql_path_preserved(self, respx_mock):
        """An RQL query already in the path is sent untouched."""
        route = respx_mock.get(f"{BASE}/rest/v2/user-events").mock(
            return_value=httpx.Response(200, json={"items": [], "total": 0})
        )

        async with make_pipeline() as pipeline:
            await pipeline.execute(
                RequestDescriptor(path="/rest/v2/user-events?sort(-activeTimestamp)&limit(1)")
            )

        url = str(route.calls.last.request.url)
        assert url.endswith("/rest/v2/user-events?sort(-activeTimestamp)&limit(1)")

    @pytest.mark.asyncio
    async def test_multipart_upload(self, respx_mock, tmp_path):
        """Each uploaded file becomes a field named after its base name."""
        first = tmp_path / "config.json"
        first.write_bytes(b'{"dataSources": []}')
        second = tmp_path / "sub" / "logo.png"
        second.parent.mkdir()
        second.write_bytes(bytes(range(256)))

        route = respx_mock.post(f"{BASE}/rest/v2/file-stores/default").mock(
            return_value=httpx.Response(200, json=[])
        )

        async with make_pipeline() as pipeline:
            await pipeline.execute(RequestDescriptor(
                path="/rest/v2/file-stores/default",
                method="POST",
                upload_files=[str(first), second],
            ))

        request = route.calls.last.request
        content_type = request.headers["content-type"]
        assert content_type.startswith("multipart/form-data; boundary=")
        body = request.content
        assert b'name="config.json"; filename="config.json"' in body
        assert b'name="logo.png"; filename="logo.png"' in body
        assert b'{"dataSources": []}' in body
        assert bytes(range(256)) in body

    @pytest.mark.asyncio
    async def test_xsrf_and_cookie_headers(self, respx_mock):
        """The XSRF token is sent as header and cookie; all cookies share one header."""
        route = respx_mock.get(f"{BASE}/test").mock(return_value=httpx.Response(200))
        pipeline = make_pipeline()
        pipeline.session.cookies["MANGO8080"] = "node01"
        token = pipeline.session.xsrf_token

        async with pipeline:
            await pipeline.execute(RequestDescriptor(path="/test"))

        headers = route.calls.last.request.headers
        assert headers["x-xsrf-token"] == token
        assert headers["cookie"] == f"XSRF-TOKEN={token}; MANGO8080=node01"

    @pytest.mark.asyncio
    async def test_no_cookie_headers_when_disabled(self, respx_mock):
        route = respx_mock.get(f"{BASE}/test").mock(return_value=httpx.Response(200))

        async with make_pipeline(enable_cookies=False) as pipeline:
            await pipeline.execute(RequestDescriptor(path="/test"))

        headers = route.calls.last.request.headers
        assert "x-xsrf-token" not in headers
        assert "cookie" not in headers

    @pytest.mark.asyncio
    async def test_header_precedence(self, respx_mock):
        """Per-request headers beat default headers, which beat base headers."""
        route = respx_mock.get(f"{BASE}/test").mock(return_value=httpx.Response(200))
        pipeline = make_pipeline(default_headers={
            "Accept": "text/csv",
            "X-Tenant": "default",
            "Authorization": "Bearer abc",
        })

        async with pipeline:
            await pipeline.execute(
                RequestDescriptor(path="/test", headers={"X-Tenant": "plant-2"})
            )

        headers = route.calls.last.request.headers
        assert headers["accept"] == "text/csv"
        assert headers["x-tenant"] == "plant-2"
        assert headers["authorization"] == "Bearer abc"


class TestCookies:
    """Tests for Set-Cookie handling across requests."""

    @pytest.mark.asyncio
    async def test_set_cookie_sent_on_next_request(self, respx_mock):
        respx_mock.post(f"{BASE}/rest/v2/login").mock(
            return_value=httpx.Response(
                200,
                json={"username": "admin"},
                headers=[("Set-Cookie", "MANGO8080=node01xyz; Path=/; HttpOnly")],
            )
        )
        current = respx_mock.get(f"{BASE}/rest/v1/users/current").mock(
            return_value=httpx.Response(200, json={"username": "admin"})
        )

        async with make_pipeline() as pipeline:
            await pipeline.execute(RequestDescriptor(
                path="/rest/v2/login", method="POST", data={"username": "admin", "password": "x"},
            ))
            await pipeline.execute(RequestDescriptor(path="/rest/v1/users/current"))

        assert "MANGO8080=node01xyz" in current.calls.last.request.headers["cookie"]

    @pytest.mark.asyncio
    async def test_max_age_zero_removes_cookie(self, respx_mock):
        """A cookie deleted by the server is absent from the next request."""
        respx_mock.post(f"{BASE}/rest/v2/logout").mock(
            return_value=httpx.Response(
                200, headers=[("Set-Cookie", "MANGO8080=; Max-Age=0; Path=/")]
            )
        )
        after = respx_mock.get(f"{BASE}/test").mock(return_value=httpx.Response(200))
        pipeline = make_pipeline()
        pipeline.session.cookies["MANGO8080"] = "node01xyz"

        async with pipeline:
            await pipeline.execute(RequestDescriptor(path="/rest/v2/logout", method="POST"))
            await pipeline.execute(RequestDescriptor(path="/test"))

        assert "MANGO8080" not in pipeline.session.cookies
        assert "MANGO8080" not in after.calls.last.request.headers["cookie"]

    @pytest.mark.asyncio
    async def test_last_set_cookie_wins(self, respx_mock):
        respx_mock.get(f"{BASE}/test").mock(
            return_value=httpx.Response(
                200, headers=[("Set-Cookie", "a=1"), ("Set-Cookie", "a=2")]
            )
        )

        async with make_pipeline() as pipeline:
            await pipeline.execute(RequestDescriptor(path="/test"))

        assert pipeline.session.cookies["a"] == "2"

    @pytest.mark.asyncio
    async def test_set_cookie_applied_on_error_status(self, respx_mock):
        respx_mock.get(f"{BASE}/test").mock(
            return_value=httpx.Response(401, headers=[("Set-Cookie", "a=1")])
        )

        async with make_pipeline() as pipeline:
            with pytest.raises(MangoHTTPError):
                await pipeline.execute(RequestDescriptor(path="/test"))

        assert pipeline.session.cookies["a"] == "1"


class TestResponseDecoding:
    """Tests for decoding modes and file streaming."""

    @pytest.mark.asyncio
    async def test_json_default(self, respx_mock):
        respx_mock.get(f"{BASE}/test").mock(
            return_value=httpx.Response(200, json=[{"xid": "DP_1"}])
        )

        async with make_pipeline() as pipeline:
            response = await pipeline.execute(RequestDescriptor(path="/test"))

        assert response.status == 200
        assert response.data == [{"xid": "DP_1"}]
        assert response.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_string_mode(self, respx_mock):
        respx_mock.get(f"{BASE}/export.csv").mock(
            return_value=httpx.Response(200, content="xid;value\nDP_1;3.5\n".encode())
        )

        async with make_pipeline() as pipeline:
            response = await pipeline.execute(
                RequestDescriptor(path="/export.csv", data_type=DataType.STRING)
            )

        assert response.data == "xid;value\nDP_1;3.5\n"

    @pytest.mark.asyncio
    async def test_buffer_mode(self, respx_mock):
        respx_mock.get(f"{BASE}/image").mock(
            return_value=httpx.Response(200, content=b"\x89PNG\r\n\x1a\n")
        )

        async with make_pipeline() as pipeline:
            response = await pipeline.execute(
                RequestDescriptor(path="/image", data_type=DataType.BUFFER)
            )

        assert response.data == b"\x89PNG\r\n\x1a\n"

    @pytest.mark.asyncio
    async def test_empty_body_is_none(self, respx_mock):
        respx_mock.delete(f"{BASE}/test").mock(return_value=httpx.Response(204))

        async with make_pipeline() as pipeline:
            response = await pipeline.execute(RequestDescriptor(path="/test", method="DELETE"))

        assert response.status == 204
        assert response.data is None

    @pytest.mark.asyncio
    async def test_write_to_file(self, respx_mock, tmp_path):
        """Streamed bodies land in the file and are not decoded."""
        content = b"timestamp,value\n" * 1000
        respx_mock.get(f"{BASE}/backup.zip").mock(
            return_value=httpx.Response(200, content=content)
        )
        target = tmp_path / "backup.zip"

        async with make_pipeline() as pipeline:
            response = await pipeline.execute(
                RequestDescriptor(path="/backup.zip", write_to_file=target)
            )

        assert target.read_bytes() == content
        assert response.data is None

    @pytest.mark.asyncio
    async def test_invalid_json_is_decode_error(self, respx_mock):
        respx_mock.get(f"{BASE}/test").mock(
            return_value=httpx.Response(200, text="<html>not json</html>")
        )

        async with make_pipeline() as pipeline:
            with pytest.raises(MangoDecodeError, match="Invalid json") as exc_info:
                await pipeline.execute(RequestDescriptor(path="/test"))

        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_invalid_json_fails_even_on_error_status(self, respx_mock):
        respx_mock.get(f"{BASE}/test").mock(
            return_value=httpx.Response(500, text="Internal Server Error")
        )

        async with make_pipeline() as pipeline:
            with pytest.raises(MangoDecodeError):
                await pipeline.execute(RequestDescriptor(path="/test"))


class TestStatusClassification:
    """Tests for success / error classification."""

    @pytest.mark.asyncio
    async def test_404_is_http_error_with_body(self, respx_mock):
        body = {"mangoStatusName": "NOT_FOUND", "localizedMessage": "Data source not found"}
        respx_mock.get(f"{BASE}/rest/v3/data-sources/missing").mock(
            return_value=httpx.Response(404, json=body)
        )

        async with make_pipeline() as pipeline:
            with pytest.raises(MangoHTTPError) as exc_info:
                await pipeline.execute(RequestDescriptor(path="/rest/v3/data-sources/missing"))

        error = exc_info.value
        assert error.status_code == 404
        assert error.data == body
        assert error.headers["content-type"] == "application/json"
        assert str(error) == "Mango HTTP error - 404 Not Found"

    @pytest.mark.asyncio
    async def test_200_is_success_with_same_payload(self, respx_mock):
        body = {"mangoStatusName": "NOT_FOUND", "localizedMessage": "Data source not found"}
        respx_mock.get(f"{BASE}/test").mock(return_value=httpx.Response(200, json=body))

        async with make_pipeline() as pipeline:
            response = await pipeline.execute(RequestDescriptor(path="/test"))

        assert response.status == 200
        assert response.data == body

    @pytest.mark.asyncio
    async def test_3xx_is_success(self, respx_mock):
        respx_mock.get(f"{BASE}/test").mock(return_value=httpx.Response(304))

        async with make_pipeline() as pipeline:
            response = await pipeline.execute(RequestDescriptor(path="/test"))

        assert response.status == 304

    @pytest.mark.asyncio
    async def test_transport_error_has_no_status(self, respx_mock):
        respx_mock.get(f"{BASE}/test").mock(side_effect=httpx.ConnectError("Connection refused"))

        async with make_pipeline() as pipeline:
            with pytest.raises(MangoTransportError) as exc_info:
                await pipeline.execute(RequestDescriptor(path="/test"))

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_idempotent_get(self, respx_mock):
        """Two identical GETs give identical bodies."""
        respx_mock.get(f"{BASE}/rest/v3/data-sources/DS_1").mock(
            return_value=httpx.Response(200, json={"xid": "DS_1", "name": "Boiler"})
        )
        descriptor = RequestDescriptor(path="/rest/v3/data-sources/DS_1")

        async with make_pipeline() as pipeline:
            first = await pipeline.execute(descriptor)
            second = await pipeline.execute(descriptor)

        assert first.data == second.data


class TestRetries:
    """Tests for fixed-delay retries."""

    @pytest.mark.asyncio
    async def test_two_failures_then_success(self, respx_mock):
        """retries=2 makes exactly 3 attempts, spaced by the fixed delay."""
        loop = asyncio.get_running_loop()
        attempt_times: list[float] = []
        outcomes = [
            httpx.ConnectError("Connection refused"),
            httpx.Response(503, json={"error": "starting"}),
            httpx.Response(200, json={"ok": True}),
        ]

        def respond(request):
            attempt_times.append(loop.time())
            outcome = outcomes[len(attempt_times) - 1]
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        route = respx_mock.get(f"{BASE}/test").mock(side_effect=respond)

        async with make_pipeline() as pipeline:
            response = await pipeline.execute(
                RequestDescriptor(path="/test", retries=2, retry_delay=0.05)
            )

        assert response.data == {"ok": True}
        assert route.call_count == 3
        gaps = [b - a for a, b in zip(attempt_times, attempt_times[1:])]
        assert all(gap >= 0.04 for gap in gaps)

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_last_error(self, respx_mock):
        route = respx_mock.get(f"{BASE}/test").mock(
            return_value=httpx.Response(503, json={"error": "down"})
        )

        async with make_pipeline() as pipeline:
            with pytest.raises(MangoHTTPError) as exc_info:
                await pipeline.execute(RequestDescriptor(path="/test", retries=2, retry_delay=0))

        assert exc_info.value.status_code == 503
        assert route.call_count == 3

    @pytest.mark.asyncio
    async def test_no_retry_by_default(self, respx_mock):
        route = respx_mock.get(f"{BASE}/test").mock(return_value=httpx.Response(500, json={}))

        async with make_pipeline() as pipeline:
            with pytest.raises(MangoHTTPError):
                await pipeline.execute(RequestDescriptor(path="/test"))

        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_client_errors_are_retried(self, respx_mock):
        """Any failure is retried, 4xx included."""
        route = respx_mock.get(f"{BASE}/test")
        route.side_effect = [
            httpx.Response(401, json={}),
            httpx.Response(200, json={"ok": True}),
        ]

        async with make_pipeline() as pipeline:
            response = await pipeline.execute(
                RequestDescriptor(path="/test", retries=1, retry_delay=0)
            )

        assert response.data == {"ok": True}
        assert route.call_count == 2

    @pytest.mark.asyncio
    async def test_decode_errors_are_retried(self, respx_mock):
        route = respx_mock.get(f"{BASE}/test")
        route.side_effect = [
            httpx.Response(200, text="{truncated"),
            httpx.Response(200, json={"ok": True}),
        ]

        async with make_pipeline() as pipeline:
            response = await pipeline.execute(
                RequestDescriptor(path="/test", retries=1, retry_delay=0)
            )

        assert response.data == {"ok": True}

    @pytest.mark.asyncio
    async def test_retry_resends_json_body(self, respx_mock):
        route = respx_mock.post(f"{BASE}/rest/v2/login")
        route.side_effect = [
            httpx.ReadTimeout("timed out"),
            httpx.Response(200, json={"username": "admin"}),
        ]

        async with make_pipeline() as pipeline:
            await pipeline.execute(RequestDescriptor(
                path="/rest/v2/login",
                method="POST",
                data={"username": "admin", "password": "admin"},
                retries=1,
                retry_delay=0,
            ))

        bodies = [json.loads(call.request.content) for call in route.calls]
        assert bodies == [{"username": "admin", "password": "admin"}] * 2

    @pytest.mark.asyncio
    async def test_errors_share_base_class(self, respx_mock):
        respx_mock.get(f"{BASE}/test").mock(side_effect=httpx.ConnectError("refused"))

        async with make_pipeline() as pipeline:
            with pytest.raises(MangoError):
                await pipeline.execute(RequestDescriptor(path="/test"))

    @pytest.mark.asyncio
    async def test_corrupt_compressed_body_is_retried(self, respx_mock):
        route = respx_mock.get(f"{BASE}/test")
        route.side_effect = [
            httpx.Response(200, content=b"not gzip", headers={"Content-Encoding": "gzip"}),
            httpx.Response(200, json={"ok": True}),
        ]

        async with make_pipeline() as pipeline:
            response = await pipeline.execute(
                RequestDescriptor(path="/test", retries=1, retry_delay=0)
            )

        assert response.data == {"ok": True}
        assert route.call_count == 2

    @pytest.mark.asyncio
    async def test_corrupt_compressed_body_raises_decode_error(self, respx_mock):
        respx_mock.get(f"{BASE}/test").mock(
            return_value=httpx.Response(
                502, content=b"not gzip", headers={"Content-Encoding": "gzip"}
            )
        )

        async with make_pipeline() as pipeline:
            with pytest.raises(MangoDecodeError) as exc_info:
                await pipeline.execute(RequestDescriptor(path="/test"))

        assert exc_info.value.status_code == 502
        assert exc_info.value.headers["content-encoding"] == "gzip"

    @pytest.mark.asyncio
    async def test_redirect_loop_raises_transport_error(self, respx_mock):
        respx_mock.get(f"{BASE}/test").mock(
            side_effect=httpx.TooManyRedirects("Exceeded maximum allowed redirects.")
        )

        async with make_pipeline() as pipeline:
            with pytest.raises(MangoTransportError):
                await pipeline.execute(RequestDescriptor(path="/test"))

    @pytest.mark.asyncio
    async def test_last_attempt_error_is_raised(self, respx_mock):
        route = respx_mock.get(f"{BASE}/test")
        route.side_effect = [
            httpx.ConnectError("refused"),
            httpx.Response(404, json={"localizedMessage": "gone"}),
        ]

        async with make_pipeline() as pipeline:
            with pytest.raises(MangoHTTPError) as exc_info:
                await pipeline.execute(
                    RequestDescriptor(path="/test", retries=1, retry_delay=0)
                )

        assert exc_info.value.status_code == 404
        assert exc_info.value.data == {"localizedMessage": "gone"}
