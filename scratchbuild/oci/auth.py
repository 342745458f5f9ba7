from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generator, Protocol

import httpx

from scratchbuild.oci.errors import (
    DecodeError,
    ProtocolError,
    TransportError,
    UnexpectedStatus,
)

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class Credentials(Protocol):
    """Supplies the bearer token attached to registry requests."""

    def token(self) -> str:
        ...


@dataclass(frozen=True, slots=True)
class StaticToken:
    """A token known up front, an empty value means anonymous access."""

    value: str = ""

    def token(self) -> str:
        return self.value


class BearerAuth(httpx.Auth):
    """Attaches HTTP Bearer Authentication to the given Request object."""

    def __init__(self, credentials: Credentials):
        self.credentials = credentials

    def auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        if token := self.credentials.token():
            request.headers["Authorization"] = f"Bearer {token}"
        yield request


def parse_www_authenticate(www_authenticate: str) -> dict[str, str]:
    """Parse a ``WWW-Authenticate: Bearer key="value",...`` challenge"""
    if not www_authenticate.startswith(BEARER_PREFIX):
        raise ProtocolError(
            "parse WWW-Authenticate",
            f'header does not start with "Bearer": {www_authenticate!r}',
        )
    result = {}
    for item in www_authenticate[len(BEARER_PREFIX) :].split(","):
        if "=" not in item:
            raise ProtocolError(
                "parse WWW-Authenticate",
                f"cannot parse header {www_authenticate!r}",
            )
        key, value = item.split("=", 1)
        result[key.strip()] = value.strip().removeprefix('"').removesuffix('"')
    return result


def authenticate(
    session: httpx.Client,
    registry_url: str,
    name: str,
    username: str | None = None,
    password: str | None = None,
) -> str:
    """Exchange basic credentials for a bearer token scoped to repository `name`

    Returns an empty string when the registry does not require authentication.

    ref: https://distribution.github.io/distribution/spec/auth/token/
    """
    try:
        response = session.get(f"{registry_url}/v2/", auth=None)
    except httpx.RequestError as e:
        raise TransportError("auth probe", e) from e

    if response.status_code == 200:
        logger.debug("%s does not require authentication", registry_url)
        return ""
    if response.status_code != 401:
        raise UnexpectedStatus("auth probe", response)

    challenge = parse_www_authenticate(response.headers.get("WWW-Authenticate", ""))
    logger.debug(challenge)
    for key in ("realm", "service"):
        if key not in challenge:
            raise ProtocolError(
                "parse WWW-Authenticate", f"challenge is missing {key!r}"
            )

    logger.info("Requesting token from %s", challenge["realm"])
    try:
        response = session.get(
            challenge["realm"],
            params={
                "service": challenge["service"],
                "scope": f"repository:{name}:pull,push",
            },
            auth=(username or "", password or ""),
        )
    except httpx.RequestError as e:
        raise TransportError("token request", e) from e
    if response.status_code != 200:
        raise UnexpectedStatus("token request", response)

    try:
        token = response.json()["token"]
    except (ValueError, KeyError, TypeError) as e:
        raise DecodeError("token request", f"malformed token response: {e}") from e
    if not isinstance(token, str):
        raise DecodeError("token request", "token is not a string")
    return token
