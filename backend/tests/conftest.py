"""
TraceRelay Backend — Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixtures:
    ├── sample_image_bytes: Minimal PNG bytes
    ├── make_upload:        Factory for Starlette UploadFile objects
    ├── fake_upstream:      Scriptable stand-in for the recognition API
    ├── upstream_client:    UpstreamClient wired to fake_upstream
    ├── recording_intake:   UploadIntake subclass remembering what validate() got
    └── test_client:        HTTPX AsyncClient talking to the app in-process
"""

import io
import json
import os
from typing import Callable, List, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from starlette.datastructures import Headers, UploadFile

# Override settings for testing BEFORE any app imports
os.environ["UPSTREAM_URL"] = "https://upstream.test/v1/search"
os.environ["LOG_LEVEL"] = "WARNING"

TEST_MAX_FILE_SIZE = 1024
TEST_UPSTREAM_TIMEOUT = 2.0


class FakeUpstream:
    """
    Records every outbound request and answers with a configurable handler.

    The default handler answers 200 {"matches": []}. Assign `handler` to any
    callable taking an httpx.Request and returning an httpx.Response (or a
    coroutine resolving to one, or raising an httpx exception).
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.handler: Callable = lambda request: httpx.Response(200, json={"matches": []})

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        return self.handler(request)

    @property
    def called(self) -> bool:
        return bool(self.requests)

    def respond_json(self, status_code: int, payload) -> None:
        self.handler = lambda request: httpx.Response(status_code, json=payload)

    def respond_raw(self, status_code: int, content: bytes, content_type: Optional[str] = None) -> None:
        headers = {"content-type": content_type} if content_type else {}
        self.handler = lambda request: httpx.Response(status_code, content=content, headers=headers)


def multipart_field_names(request: httpx.Request) -> List[str]:
    """Names of the parts in a captured multipart request, in order."""
    names = []
    for line in request.content.split(b"\r\n"):
        if line.lower().startswith(b"content-disposition: form-data;"):
            name = line.split(b'name="', 1)[1].split(b'"', 1)[0]
            names.append(name.decode())
    return names


def multipart_field_value(request: httpx.Request, name: str) -> Optional[str]:
    """Value of a non-file part in a captured multipart request."""
    boundary = request.headers["content-type"].split("boundary=", 1)[1].encode()
    for part in request.content.split(b"--" + boundary):
        head, _, body = part.partition(b"\r\n\r\n")
        if f'name="{name}"'.encode() in head and b"filename=" not in head:
            return body[: -len(b"\r\n")].decode()
    return None


@pytest.fixture
def sample_image_bytes():
    """Smallest PNG header; enough for the relay, which never decodes images."""
    return b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + b"\x00" * 16


@pytest.fixture
def make_upload():
    """Build an UploadFile as Starlette's form parser would."""

    def _make(content: bytes, filename: str = "cat.png", content_type: str = "image/png", size: Optional[int] = None):
        return UploadFile(
            file=io.BytesIO(content),
            size=len(content) if size is None else size,
            filename=filename,
            headers=Headers({"content-type": content_type}),
        )

    return _make


@pytest.fixture
def recording_intake():
    """
    UploadIntake subclass that keeps every form it validated and whether
    the chosen file part had rolled over to a temporary file.
    """
    from tracerelay.services.intake import UploadIntake

    class RecordingIntake(UploadIntake):
        def __init__(self, max_file_size=None):
            super().__init__(max_file_size=max_file_size)
            self.forms = []
            self.rolled_to_disk = []

        async def validate(self, file, url, options):
            self.forms.append(options)
            if file is not None:
                self.rolled_to_disk.append(getattr(file.file, "_rolled", False))
            return await super().validate(file, url, options)

    return RecordingIntake


@pytest.fixture
def fake_upstream():
    return FakeUpstream()


@pytest.fixture
def upstream_client(fake_upstream):
    from tracerelay.services.upstream import UpstreamClient

    return UpstreamClient(
        endpoint="https://upstream.test/v1/search",
        timeout=TEST_UPSTREAM_TIMEOUT,
        transport=httpx.MockTransport(fake_upstream),
    )


@pytest_asyncio.fixture
async def test_client(upstream_client):
    """
    HTTPX AsyncClient routed straight into the app, with the upstream
    replaced by fake_upstream and a 1KB upload limit.
    """
    from tracerelay.main import app
    from tracerelay.routes.recognize import get_upload_intake, get_upstream_client
    from tracerelay.services.intake import UploadIntake

    app.dependency_overrides[get_upstream_client] = lambda: upstream_client
    app.dependency_overrides[get_upload_intake] = lambda: UploadIntake(max_file_size=TEST_MAX_FILE_SIZE)

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def json_body(response: httpx.Response):
    return json.loads(response.content)


def render_multipart(files=None, data=None):
    """Headers and body httpx would send for this form."""
    request = httpx.Request("POST", "http://test/api/recognize", files=files, data=data)
    return dict(request.headers), request.read()


class ChunkedBody:
    """ASGI `receive` callable that hands out a body in fixed-size chunks."""

    def __init__(self, body: bytes, chunk_size: int = 64 * 1024):
        self.chunks = [body[i:i + chunk_size] for i in range(0, len(body), chunk_size)] or [b""]
        self.delivered = 0

    @property
    def fully_read(self) -> bool:
        return self.delivered == len(self.chunks)

    async def __call__(self):
        if self.delivered < len(self.chunks):
            chunk = self.chunks[self.delivered]
            self.delivered += 1
            return {
                "type": "http.request",
                "body": chunk,
                "more_body": self.delivered < len(self.chunks),
            }
        return {"type": "http.disconnect"}


def make_request(headers, receive):
    """A bare Starlette request for feeding UploadIntake.from_request."""
    from starlette.requests import Request

    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/recognize",
        "query_string": b"",
        "headers": [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in headers.items()
        ],
    }
    return Request(scope, receive)
