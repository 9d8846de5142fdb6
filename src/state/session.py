"""
Session lifecycle: who is signed in, and keeping their credentials fresh.

The SessionManager is the only writer of the TokenStore. It registers itself
as the ApiClient's refresher, so every 401 anywhere in the client funnels
into one refresh() call at a time.
"""

from __future__ import annotations

import asyncio
import base64
import json
import re
import time
from typing import Any, Callable, Iterable, Mapping, Optional

from api import endpoints, normalize
from api.client import ApiClient
from api.errors import ApiError, ShopError, ValidationError
from api.models import Session, UserProfile
from storage.tokens import Persistence, TokenStore
from utils.logger import get_logger
from utils.messages import MessageSink, SessionChanged, SessionExpired, post_to
from utils.validators import validate_email, validate_otp, validate_required

_logger = get_logger(__name__)

_ROLE_PREFIX = re.compile(r"^ROLE_")


# ---------------------------
# Claims & roles
# ---------------------------


def decode_claims(token: Optional[str]) -> Optional[dict]:
    """Payload of a JWT, unverified. None if the token is not a decodable JWT."""
    if not token:
        return None
    parts = token.split(".")
    if len(parts) < 2:
        return None
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")))
    except (ValueError, UnicodeError):
        return None
    return claims if isinstance(claims, dict) else None


def extract_roles(value: Any) -> list[str]:
    """
    Normalize a role list or a space-delimited scope string:
    uppercase each entry, then drop a leading ROLE_ prefix.
    """
    if value is None:
        return []
    if isinstance(value, str):
        raw: Iterable[Any] = value.split()
    elif isinstance(value, (list, tuple, set, frozenset)):
        raw = value
    else:
        return []
    roles = []
    for r in raw:
        r = str(r).strip()
        if r:
            roles.append(_ROLE_PREFIX.sub("", r.upper()))
    return roles


def is_admin_from_claims(claims: Optional[Mapping[str, Any]]) -> bool:
    roles = extract_roles(normalize.first(claims, "roles", "authorities", "scope"))
    return "ADMIN" in roles


def is_admin_from_profile(profile: Optional[UserProfile | Mapping[str, Any]]) -> bool:
    if profile is None:
        return False
    if isinstance(profile, UserProfile):
        source = dict(profile.raw)
        if source.get("roles") is None and profile.roles:
            source["roles"] = list(profile.roles)
    else:
        source = profile
    roles = extract_roles(normalize.first(source, "roles", "authorities", "permissions"))
    return "ADMIN" in roles


def is_expired(claims: Optional[Mapping[str, Any]], now: float) -> bool:
    exp = normalize.first(claims, "exp")
    if exp is None:
        return False
    try:
        return float(exp) * 1000 < now * 1000
    except (TypeError, ValueError):
        return False


# ---------------------------
# Session manager
# ---------------------------


class SessionManager:
    def __init__(
        self,
        client: ApiClient,
        tokens: TokenStore,
        post_message: Optional[MessageSink] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._tokens = tokens
        self._post = post_message
        self._clock = clock
        self._session: Optional[Session] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self.loading = True
        client.set_refresher(self.refresh)

    # read-only view

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def user(self) -> Optional[UserProfile]:
        return self._session.user if self._session else None

    @property
    def is_admin(self) -> bool:
        return bool(self._session and self._session.is_admin)

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def access_token(self) -> Optional[str]:
        return self._tokens.access_token

    def _set_session(self, session: Optional[Session]) -> None:
        self._session = session
        post_to(
            self._post,
            SessionChanged(
                authenticated=session is not None,
                is_admin=bool(session and session.is_admin),
            ),
        )

    # ---------------------------
    # Lifecycle
    # ---------------------------

    async def initialize(self) -> None:
        """Restore the session persisted by a previous run, if any."""
        self.loading = True
        try:
            await self._tokens.open()
            stored = self._tokens.access_token
            if not stored:
                _logger.debug("No stored access token; starting signed out")
                return

            claims = decode_claims(stored)
            if claims is None:
                _logger.warning("Stored access token could not be decoded")
            if is_expired(claims, self._clock()):
                _logger.info("Stored access token expired; refreshing")
                await self.refresh()
                return

            # optimistic identity from claims until /auth/me answers
            claims = claims or {}
            refresh_token, _ = self._tokens.refresh_token()
            cached = self._tokens.cached_profile()
            provisional = normalize.profile(cached if cached else claims)
            self._set_session(
                Session(
                    access_token=stored,
                    refresh_token=refresh_token,
                    user=provisional,
                    is_admin=is_admin_from_claims(claims),
                )
            )
            await self._reconcile_profile(stored, claims)
        except Exception:
            _logger.exception("Session initialization failed; continuing signed out")
            if self._session is not None:
                self._set_session(None)
        finally:
            self.loading = False

    async def _reconcile_profile(self, token: str, claims: Mapping[str, Any]) -> None:
        try:
            profile = await endpoints.me(self._client, token=token)
        except ApiError as e:
            if e.status in (401, 403):
                _logger.info(f"/auth/me rejected stored token ({e.status}); refreshing")
                await self.refresh()
                return
            _logger.error(f"/auth/me failed (non-auth): {e}")
            self._set_session(None)
            return
        except ShopError as e:
            _logger.error(f"/auth/me failed: {e}")
            self._set_session(None)
            return

        if self._tokens.access_token != token:
            # a refresh landed meanwhile and already set a fresher session
            return
        await self._tokens.set_cached_profile(profile.raw)
        self._set_session(
            Session(
                access_token=token,
                refresh_token=self._tokens.refresh_token()[0],
                user=profile,
                is_admin=is_admin_from_claims(claims) or is_admin_from_profile(profile),
            )
        )

    async def login(
        self,
        access_token: str,
        refresh_token: Optional[str],
        profile: Optional[UserProfile],
        remember: bool | Persistence = False,
    ) -> Session:
        """
        Install a new session. The refresh token goes to the durable tier when
        remember is set, else to the session tier; any previous one is dropped.
        """
        if isinstance(remember, Persistence):
            persistence = remember
        else:
            persistence = Persistence.DURABLE if remember else Persistence.SESSION

        await self._tokens.set_access_token(access_token)
        await self._tokens.set_refresh_token(refresh_token, persistence)

        claims = decode_claims(access_token)
        if profile is None:
            profile = self.user or normalize.profile(claims or {})
        await self._tokens.set_cached_profile(profile.raw or None)

        session = Session(
            access_token=access_token,
            refresh_token=refresh_token,
            user=profile,
            is_admin=is_admin_from_claims(claims) or is_admin_from_profile(profile),
        )
        self._set_session(session)
        _logger.info(f"Signed in as {profile.email or profile.id} (admin={session.is_admin})")
        return session

    async def refresh(self) -> bool:
        """
        Exchange the stored refresh token for new credentials.

        Single-flight: concurrent callers share one in-flight attempt and all
        get its outcome. Returns True when a new session is installed; on
        failure the session is destroyed and False is returned.
        """
        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.create_task(self._refresh_once())
            self._refresh_task = task
        return await asyncio.shield(task)

    async def _refresh_once(self) -> bool:
        token, tier = self._tokens.refresh_token()
        if not token:
            _logger.info("No refresh token; signing out")
            await self.logout()
            post_to(self._post, SessionExpired())
            return False
        try:
            bundle = await endpoints.refresh(self._client, token)
        except ShopError as e:
            _logger.error(f"Refresh failed: {e}")
            await self.logout()
            post_to(self._post, SessionExpired())
            return False
        if not bundle.access_token:
            _logger.error("Refresh response carried no access token")
            await self.logout()
            post_to(self._post, SessionExpired())
            return False

        # backends that do not rotate refresh tokens omit it from the response
        await self.login(
            bundle.access_token,
            bundle.refresh_token or token,
            bundle.user,
            remember=tier is Persistence.DURABLE,
        )
        return True

    async def logout(self) -> None:
        """Drop every persisted credential and forget the user. Idempotent."""
        _logger.warning("LOGOUT called")
        await self._tokens.clear()
        was_signed_in = self._session is not None
        self._session = None
        if was_signed_in:
            post_to(self._post, SessionChanged(authenticated=False))

    # ---------------------------
    # Account operations
    # ---------------------------

    async def sign_in(self, email: str, password: str, remember: bool = False) -> Session:
        """Password login. Server errors propagate with the server's message."""
        email = validate_email(email)
        password = validate_required("password", password, "Password")

        bundle = await endpoints.login(self._client, email, password)
        if not bundle.access_token:
            raise ApiError(200, "Unexpected response from the server")

        profile = bundle.user
        if profile is None:
            try:
                profile = await endpoints.me(self._client, token=bundle.access_token)
            except ShopError as e:
                _logger.warning(f"Could not fetch profile after login: {e}")
                profile = UserProfile(id="", email=email)
        return await self.login(bundle.access_token, bundle.refresh_token, profile, remember)

    async def register(self, email: str, password: str, name: str) -> Optional[Session]:
        """Sign up. Signs in for this process only when the backend returns tokens."""
        email = validate_email(email)
        password = validate_required("password", password, "Password")
        name = validate_required("name", name, "Name")

        bundle = await endpoints.register(self._client, email, password, name)
        if bundle is None:
            return None
        return await self.login(
            bundle.access_token, bundle.refresh_token, bundle.user, Persistence.SESSION
        )

    async def refresh_me(self) -> None:
        """Re-read the profile for the current session; failures only get logged."""
        if self._session is None:
            return
        try:
            profile = await endpoints.me(self._client)
        except ShopError as e:
            _logger.error(f"refresh_me failed: {e}")
            return
        if self._session is None:
            return
        claims = decode_claims(self._session.access_token)
        await self._tokens.set_cached_profile(profile.raw)
        self._set_session(
            Session(
                access_token=self._tokens.access_token or self._session.access_token,
                refresh_token=self._tokens.refresh_token()[0],
                user=profile,
                is_admin=is_admin_from_claims(claims) or is_admin_from_profile(profile),
            )
        )

    async def request_password_otp(self, email: str) -> None:
        await endpoints.request_password_otp(self._client, validate_email(email))

    async def reset_password(self, email: str, otp: str, new_password: str) -> None:
        await endpoints.reset_password(
            self._client,
            validate_email(email),
            validate_otp(otp),
            validate_required("new_password", new_password, "New password"),
        )

    async def change_password(self, current_password: str, new_password: str) -> str:
        current_password = validate_required("current_password", current_password, "Current password")
        new_password = validate_required("new_password", new_password, "New password")
        if current_password == new_password:
            raise ValidationError("new_password", "New password must differ from the current one.")
        return await endpoints.change_password(self._client, current_password, new_password)

    async def delete_account(self) -> str:
        message = await endpoints.delete_account(self._client)
        await self.logout()
        return message
