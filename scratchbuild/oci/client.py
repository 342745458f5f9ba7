from __future__ import annotations

import logging
from typing import Sequence
from urllib.parse import urlparse, urlunparse

import httpx

from scratchbuild.oci import auth
from scratchbuild.oci.auth import BearerAuth, Credentials, StaticToken
from scratchbuild.oci.digest import Digest
from scratchbuild.oci.errors import ProtocolError, TransportError, UnexpectedStatus

logger = logging.getLogger(__name__)

DOCKER_HUB = "registry-1.docker.io"
DEFAULT_TIMEOUT = httpx.Timeout(30.0)


def _clean_url(registry_url: str) -> str:
    if "://" not in registry_url:
        registry_url = f"https://{registry_url}"
    parts = urlparse(registry_url)
    if parts.netloc in ("docker.io", "index.docker.io"):
        parts = parts._replace(netloc=DOCKER_HUB)
    return urlunparse(parts).rstrip("/")


class Client:
    """Client for the registry V2 API.

    Owns the HTTP connection pool shared by the authentication handshake and
    every repository created from it.
    """

    def __init__(
        self,
        registry_url: str,
        timeout: httpx.Timeout | float | None = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.registry_url = _clean_url(registry_url)
        self.timeout = timeout
        self.transport = transport
        self._session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def session(self) -> httpx.Client:
        if self._session is None:
            self._session = httpx.Client(
                follow_redirects=True,
                max_redirects=2,
                timeout=self.timeout,
                transport=self.transport,
            )
        return self._session

    def close(self):
        if self._session is not None:
            self._session.close()
            self._session = None

    def url(self, uri: str) -> str:
        """Return `uri` as an absolute url, relative uris are on the registry"""
        if uri.startswith("/"):
            return f"{self.registry_url}{uri}"
        return uri

    def request(
        self, operation: str, method: str, uri: str, **kwargs
    ) -> httpx.Response:
        try:
            return self.session.request(method, self.url(uri), **kwargs)
        except httpx.RequestError as e:
            raise TransportError(operation, e) from e

    def authenticate(
        self, name: str, username: str | None = None, password: str | None = None
    ) -> str:
        """Get a bearer token for repository `name`, empty if none is needed"""
        return auth.authenticate(
            self.session,
            self.registry_url,
            name=name,
            username=username,
            password=password,
        )

    def repository(
        self, name: str, credentials: Credentials | None = None
    ) -> Repository:
        return Repository(client=self, name=name, credentials=credentials)


class Repository:
    """Blob and manifest operations on a single repository `name`."""

    def __init__(
        self, client: Client, name: str, credentials: Credentials | None = None
    ):
        self.client = client
        self.name = name
        self.auth = BearerAuth(credentials or StaticToken())

    def __repr__(self):
        return f"Repository({self.client.registry_url}/{self.name})"

    def _request(self, operation: str, method: str, uri: str, **kwargs):
        return self.client.request(operation, method, uri, auth=self.auth, **kwargs)

    def blob_exists(self, digest: Digest) -> bool:
        response = self._request(
            "blob existence check", "HEAD", f"/v2/{self.name}/blobs/{digest}"
        )
        if response.status_code == 200:
            return True
        if response.status_code in (401, 403):
            raise UnexpectedStatus("blob existence check", response)
        if response.status_code != 404:
            logger.debug(
                "Treating status %s for %s as absent", response.status_code, digest
            )
        return False

    def start_upload(self) -> httpx.URL:
        """Open an upload session and return its location"""
        response = self._request(
            "blob upload session", "POST", f"/v2/{self.name}/blobs/uploads/"
        )
        if response.status_code != 202:
            raise UnexpectedStatus("blob upload session", response)
        location = response.headers.get("Location")
        if not location:
            raise ProtocolError(
                "blob upload session", "response has no Location header"
            )
        # Location may be relative to the upload endpoint
        return response.request.url.join(location)

    def push_blob(self, blob: bytes, digest: Digest) -> bool:
        """Ensure `blob` exists in the repository under `digest`

        Returns False when the registry already had the blob.

        ref: https://github.com/opencontainers/distribution-spec/blob/main/spec.md#pushing-blobs
        """
        if self.blob_exists(digest):
            logger.info("Blob already exists: %s@%s", self.name, digest)
            return False

        location = self.start_upload()
        logger.debug("Uploading %s bytes to %s", len(blob), location)
        response = self._request(
            "blob upload",
            "PUT",
            str(location.copy_merge_params({"digest": str(digest)})),
            content=blob,
            headers={
                "Content-Type": "application/octet-stream",
                "Content-Length": str(len(blob)),
            },
        )
        if response.status_code != 201:
            raise UnexpectedStatus("blob upload", response)
        logger.info("Uploaded blob %s@%s", self.name, digest)
        return True

    def push_manifest(self, data: bytes, media_type: str, tags: Sequence[str]):
        """Push the manifest `data` once for every tag in `tags`

        ref: https://github.com/opencontainers/distribution-spec/blob/main/spec.md#pushing-manifests
        """
        if isinstance(tags, str):
            raise TypeError("tags must be a sequence of tags, not a single string")
        if not tags:
            raise ValueError("at least one tag is required")
        for tag in tags:
            logger.info("Pushing manifest %s:%s", self.name, tag)
            response = self._request(
                f"manifest push for tag {tag}",
                "PUT",
                f"/v2/{self.name}/manifests/{tag}",
                content=data,
                headers={"Content-Type": media_type},
            )
            if response.status_code not in (200, 201):
                raise UnexpectedStatus(f"manifest push for tag {tag}", response)
