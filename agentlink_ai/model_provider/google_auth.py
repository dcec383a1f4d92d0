"""Google credentials that refresh through the injected HTTP transport.

`google-auth` performs its own token requests (service account JWT exchange,
metadata server, authorized-user refresh). The helpers here make those
requests go through an ``httpx`` client built on the injected transport, and
provide an ``httpx`` transport wrapper that stamps a valid ``Authorization``
header on every outgoing Vertex AI request.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Mapping, Optional, Tuple

import google.auth
import httpx
from google.auth import credentials as ga_credentials
from google.auth import exceptions as ga_exceptions
from google.auth import transport as ga_transport

from .errors import ClientBuildError

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
DEFAULT_AUTH_TIMEOUT = 30.0


class _HttpxResponse(ga_transport.Response):
    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    @property
    def status(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> Mapping[str, str]:
        return self._response.headers

    @property
    def data(self) -> bytes:
        return self._response.content


class HttpxAuthRequest(ga_transport.Request):
    """`google.auth.transport.Request` implemented on a blocking ``httpx.Client``."""

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    def __call__(
        self,
        url: str,
        method: str = "GET",
        body: Optional[bytes] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> _HttpxResponse:
        try:
            response = self._client.request(
                method,
                url,
                content=body,
                headers=headers,
                timeout=timeout if timeout is not None else DEFAULT_AUTH_TIMEOUT,
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise ga_exceptions.TransportError(e) from e
        return _HttpxResponse(response)


class TransportBoundCredentials(ga_credentials.Credentials):
    """Credentials wrapper whose refresh always uses one fixed request adapter.

    SDKs that refresh credentials on their own (``google-genai`` does) pass
    their default ``requests`` transport; this wrapper ignores it so token
    fetches keep following the injected proxy policy.
    """

    def __init__(self, inner: ga_credentials.Credentials, request: ga_transport.Request) -> None:
        super().__init__()
        self._inner = inner
        self._request = request
        self.token = inner.token
        self.expiry = inner.expiry

    @property
    def inner(self) -> ga_credentials.Credentials:
        return self._inner

    @property
    def quota_project_id(self) -> Optional[str]:  # type: ignore[override]
        return getattr(self._inner, "quota_project_id", None)

    def refresh(self, request: Any) -> None:  # noqa: ARG002
        self._inner.refresh(self._request)
        self.token = self._inner.token
        self.expiry = self._inner.expiry


def load_vertex_credentials(
    credentials_json: Optional[str],
    request: ga_transport.Request,
) -> Tuple[TransportBoundCredentials, Optional[str]]:
    """Resolve Vertex AI credentials.

    Uses the given credentials JSON blob when present, otherwise application
    default credentials. Nothing is fetched over the network here; tokens are
    obtained lazily on first use.

    Args:
        credentials_json: Service account or authorized user JSON, or empty.
        request: Request adapter used for every credential-fetch network call.

    Returns:
        The bound credentials and the project id they carry, if any.

    Raises:
        ClientBuildError: If the JSON is malformed or no credentials can be found.
    """
    scopes = [CLOUD_PLATFORM_SCOPE]
    if credentials_json and credentials_json.strip():
        try:
            info = json.loads(credentials_json)
        except json.JSONDecodeError as e:
            raise ClientBuildError(f"failed to create credentials: invalid JSON ({e})") from e
        try:
            creds, project = google.auth.load_credentials_from_dict(info, scopes=scopes, request=request)
        except ga_exceptions.GoogleAuthError as e:
            raise ClientBuildError(f"failed to create credentials: {e}") from e
        logger.debug("Loaded Vertex AI credentials from JSON (project=%s)", project)
    else:
        try:
            creds, project = google.auth.default(scopes=scopes, request=request)
        except ga_exceptions.GoogleAuthError as e:
            raise ClientBuildError(f"failed to detect default credentials: {e}") from e
        logger.debug("Using application default credentials for Vertex AI (project=%s)", project)
    return TransportBoundCredentials(creds, request), project


class GoogleAuthTransport(httpx.AsyncBaseTransport):
    """Async transport wrapper injecting a fresh bearer token into every request."""

    def __init__(
        self,
        base: httpx.AsyncBaseTransport,
        credentials: ga_credentials.Credentials,
        request: ga_transport.Request,
    ) -> None:
        self._base = base
        self._credentials = credentials
        self._request = request
        self._refresh_lock = asyncio.Lock()

    async def _ensure_valid(self) -> None:
        if self._credentials.valid:
            return
        async with self._refresh_lock:
            if not self._credentials.valid:
                logger.debug("Refreshing Google credentials")
                await asyncio.to_thread(self._credentials.refresh, self._request)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await self._ensure_valid()
        auth_headers: dict = {}
        self._credentials.apply(auth_headers)
        request.headers.update(auth_headers)
        return await self._base.handle_async_request(request)

    async def aclose(self) -> None:
        await self._base.aclose()
