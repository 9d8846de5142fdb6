# owns the HTTP connection to the storefront API; the only place headers are built
from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

import httpx

from api.errors import ApiError, AuthenticationError, TransportError
from storage.tokens import TokenStore
from utils.logger import get_logger

_logger = get_logger(__name__)

Refresher = Callable[[], Awaitable[bool]]


def error_from_response(resp: httpx.Response) -> ApiError:
    """Build an ApiError from a non-2xx response: message, then error, then raw text."""
    message = None
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
    if not message:
        message = resp.text.strip() or f"{resp.status_code} {resp.reason_phrase}"
    return ApiError(resp.status_code, str(message))


class ApiClient:
    """
    Thin async wrapper over httpx.AsyncClient.

    The bearer token is read from the TokenStore on every request, never cached,
    since a refresh can replace it between any two awaits. A 401 on an
    authenticated request triggers the registered refresher (single-flight on
    the session side) and the request is replayed once with the new token.
    """

    def __init__(
        self,
        base_url: str,
        tokens: TokenStore,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._tokens = tokens
        self._refresher: Optional[Refresher] = None
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def set_refresher(self, refresher: Optional[Refresher]) -> None:
        self._refresher = refresher

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def _recover(self, sent_token: Optional[str]) -> bool:
        current = self._tokens.access_token
        if current and current != sent_token:
            # refreshed by someone else while this request was in flight
            return True
        if self._refresher is None:
            return False
        return await self._refresher()

    async def request(
        self,
        method: str,
        path: str,
        *,
        auth: bool = True,
        retry: bool = True,
        token: Optional[str] = None,
        json: Any = None,
        params: Optional[dict] = None,
        files: Optional[dict] = None,
    ) -> httpx.Response:
        """
        Send a request and return the 2xx response.

        auth=False sends no Authorization header (login, refresh).
        token pins a specific access token and disables the 401 replay.
        """
        sent_token = token if token is not None else (self._tokens.access_token if auth else None)
        headers = {"Authorization": f"Bearer {sent_token}"} if sent_token else {}

        try:
            resp = await self._http.request(
                method, path, headers=headers, json=json, params=params, files=files
            )
        except httpx.TransportError as e:
            _logger.warning(f"{method} {path} failed: {e!r}")
            raise TransportError(f"Cannot reach the server ({type(e).__name__})") from e

        if resp.status_code == 401 and auth and token is None:
            if retry:
                _logger.info(f"{method} {path} -> 401, refreshing credentials")
                if await self._recover(sent_token):
                    return await self.request(
                        method, path, auth=auth, retry=False, json=json, params=params, files=files
                    )
            raise AuthenticationError(401, error_from_response(resp).message)

        if resp.is_error:
            err = error_from_response(resp)
            _logger.debug(f"{method} {path} -> {err}")
            raise err
        return resp

    async def request_json(self, method: str, path: str, **kwargs) -> Any:
        """Like request() but returns the decoded JSON body, or None for an empty body."""
        resp = await self.request(method, path, **kwargs)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(resp.status_code, "Malformed JSON in server response") from e
