import base64
import json
import re
from hashlib import sha256
from pathlib import Path

import httpx
import pytest

from scratchbuild.oci import Client

REGISTRY_URL = "https://registry.example"
REALM = "https://auth.example/token"

_BLOB = re.compile(r"^/v2/(?P<name>.+)/blobs/(?P<digest>sha256:[a-f0-9]{64})$")
_UPLOADS = re.compile(r"^/v2/(?P<name>.+)/blobs/uploads/$")
_UPLOAD = re.compile(r"^/upload/(?P<id>\d+)$")
_MANIFEST = re.compile(r"^/v2/(?P<name>.+)/manifests/(?P<tag>[^/]+)$")


class FakeRegistry:
    """In memory registry V2, served through httpx.MockTransport"""

    def __init__(self, token: str | None = None, username="user", password="secret"):
        self.token = token
        self.username = username
        self.password = password
        self.blobs: dict[str, bytes] = {}
        self.manifests: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self._sessions = 0

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, method: str, path_prefix: str = "") -> int:
        return sum(
            1
            for request in self.requests
            if request.method == method and request.url.path.startswith(path_prefix)
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url.startswith(REALM):
            return self._token(request)
        if self.token is not None and request.headers.get(
            "Authorization"
        ) != f"Bearer {self.token}":
            return httpx.Response(
                401,
                headers={
                    "WWW-Authenticate": f'Bearer realm="{REALM}",service="registry.example"'
                },
            )
        path = request.url.path
        if path == "/v2/":
            return httpx.Response(200, json={})
        if (match := _BLOB.match(path)) and request.method == "HEAD":
            status = 200 if match["digest"] in self.blobs else 404
            return httpx.Response(status)
        if _UPLOADS.match(path) and request.method == "POST":
            self._sessions += 1
            return httpx.Response(
                202, headers={"Location": f"/upload/{self._sessions}?_state=abc"}
            )
        if _UPLOAD.match(path) and request.method == "PUT":
            return self._upload(request)
        if (match := _MANIFEST.match(path)) and request.method == "PUT":
            return self._manifest(request, match["tag"])
        return httpx.Response(404, json={"errors": [{"code": "UNSUPPORTED"}]})

    def _token(self, request: httpx.Request) -> httpx.Response:
        expected = base64.b64encode(
            f"{self.username}:{self.password}".encode()
        ).decode()
        if request.headers.get("Authorization") != f"Basic {expected}":
            return httpx.Response(401, json={"details": "incorrect username or password"})
        return httpx.Response(200, json={"token": self.token})

    def _upload(self, request: httpx.Request) -> httpx.Response:
        digest = request.url.params["digest"]
        content = request.content
        if f"sha256:{sha256(content).hexdigest()}" != digest:
            return httpx.Response(400, json={"errors": [{"code": "DIGEST_INVALID"}]})
        self.blobs[digest] = content
        return httpx.Response(201, headers={"Docker-Content-Digest": digest})

    def _manifest(self, request: httpx.Request, tag: str) -> httpx.Response:
        manifest = json.loads(request.content)
        for descriptor in [manifest["config"], *manifest["layers"]]:
            blob = self.blobs.get(descriptor["digest"])
            if blob is None or len(blob) != descriptor["size"]:
                return httpx.Response(
                    400, json={"errors": [{"code": "MANIFEST_BLOB_UNKNOWN"}]}
                )
        self.manifests[tag] = request.content
        return httpx.Response(201)


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def client(registry):
    with Client(REGISTRY_URL, transport=registry.transport()) as client:
        yield client


@pytest.fixture
def repository(client):
    return client.repository("test/image")


@pytest.fixture
def handler_client():
    """Return a factory for clients backed by a custom request handler"""
    clients = []

    def factory(handler, registry_url=REGISTRY_URL) -> Client:
        client = Client(registry_url, transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()


@pytest.fixture
def testdata(tmp_path) -> Path:
    """Return a flat directory to build a layer from"""
    (tmp_path / "app").write_bytes(b"#!/bin/sh\necho hello\n")
    (tmp_path / "config.yaml").write_text("greeting: hello\n")
    return tmp_path
