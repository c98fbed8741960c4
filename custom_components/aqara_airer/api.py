"""API client for the Aqara Airer cloud.

This module provides the client that talks to the Aqara open cloud on behalf
of a single drying rack: authorization-code login, access token refresh,
attribute queries and updates, and a client side estimate of the rack
position while it is moving.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs, urlsplit

import httpx
from homeassistant.core import HomeAssistant
from homeassistant.helpers.httpx_client import create_async_httpx_client

from .const import (
    AIRER_MODEL,
    ATTR_AIRER_CONTROL,
    ATTR_LEVEL,
    ATTR_LIGHT_CONTROL,
    BASE_URL,
    DEFAULT_SPEED,
    DEVICE_RESOLVE_INTERVAL,
    REDIRECT_URI,
)
from .models import AirerMotion, CloudContract, MotionEstimate, TokenSession

if TYPE_CHECKING:
    from collections.abc import Callable

_LOGGER = logging.getLogger(__name__)

# HTTP status codes
HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401


class AqaraApiClientError(Exception):
    """Base exception for Aqara API client errors."""


class AqaraAuthError(AqaraApiClientError):
    """Exception raised when authorization or token exchange fails."""


class AqaraDeviceQueryError(AqaraApiClientError):
    """Exception raised when a queried attribute is missing from the response."""


class AqaraRemoteError(AqaraApiClientError):
    """Exception raised when the cloud rejects a device operation."""


class AqaraTransportError(AqaraApiClientError):
    """Exception raised on network or HTTP layer failures."""


class AqaraDeviceResolutionPending(AqaraApiClientError):
    """Raised while no device of the supported model has been found."""


def create_headers(app_id: str, access_token: str, now_ms: int) -> dict[str, str]:
    """Create HTTP headers for authenticated /open requests.

    Args:
        app_id: Application (client) identifier.
        access_token: Current access token.
        now_ms: Request timestamp in epoch milliseconds.

    Returns:
        Dictionary containing the headers the open API requires.

    """
    return {
        "Appid": app_id,
        "Accesstoken": access_token,
        "Time": str(now_ms),
    }


def is_http_error(status: int) -> bool:
    """Return True if the HTTP status code indicates an error."""
    return status >= HTTP_BAD_REQUEST


def is_auth_error(status: int) -> bool:
    """Return True if the HTTP status code indicates an authentication error."""
    return status == HTTP_UNAUTHORIZED


def is_api_error(data: dict[str, Any]) -> bool:
    """Return True if the response carries a non-zero status code.

    A missing ``code`` field is treated as success, flat token responses
    do not carry one.
    """
    return data.get("code", 0) != 0


def error_message(data: dict[str, Any]) -> str:
    """Build a readable message from an error response."""
    message = data.get("message") or data.get("msgDetails") or "Unknown API error"
    return f"{message} (code {data.get('code')})"


def validate_response(response: httpx.Response) -> dict[str, Any]:
    """Validate the HTTP layer of a response and return its JSON body.

    Args:
        response: HTTP response object to validate.

    Returns:
        Parsed JSON data from the response.

    Raises:
        AqaraAuthError: If the cloud answered 401.
        AqaraRemoteError: If the status is an error or the body is not JSON.

    """
    if is_http_error(response.status_code):
        if is_auth_error(response.status_code):
            auth_error = "Access token rejected"
            raise AqaraAuthError(auth_error)
        remote_error = f"Request failed: {response.status_code}"
        raise AqaraRemoteError(remote_error)

    try:
        data = response.json()
    except ValueError as err:
        invalid_body = f"Invalid JSON response: {err}"
        raise AqaraRemoteError(invalid_body) from err

    if not isinstance(data, dict):
        invalid_body = f"Unexpected response body: {data!r}"
        raise AqaraRemoteError(invalid_body)
    return data


def extract_code_from_location(location: str | None) -> str:
    """Extract the authorization code from a redirect location.

    Raises:
        AqaraAuthError: If the location is missing or carries no code.

    """
    if not location:
        missing = "Authorization response carried no redirect location"
        raise AqaraAuthError(missing)

    codes = parse_qs(urlsplit(location).query).get("code")
    if not codes or not codes[0]:
        missing = f"Redirect location carried no authorization code: {location}"
        raise AqaraAuthError(missing)
    return codes[0]


def extract_devices(data: dict[str, Any]) -> list[dict[str, Any]]:
    """Extract the device list from a device query response.

    The list is found under ``result.data``, or directly under ``result``.
    """
    result = data.get("result") or {}
    if isinstance(result, dict):
        result = result.get("data") or []
    return [item for item in result if isinstance(item, dict)]


def find_device_id(data: dict[str, Any], model: str) -> str | None:
    """Return the did of the first device of ``model``, if any."""
    for device in extract_devices(data):
        if device.get("model") == model and device.get("did"):
            return str(device["did"])
    return None


def extract_attribute(data: dict[str, Any], attr: str) -> int:
    """Extract the numeric value of ``attr`` from a resource query response.

    Raises:
        AqaraDeviceQueryError: If the attribute is absent or not numeric.

    """
    for entry in data.get("result") or []:
        if isinstance(entry, dict) and entry.get("attr") == attr:
            try:
                return int(float(entry.get("value")))
            except (TypeError, ValueError, OverflowError) as err:
                invalid = f"Attribute {attr} has a non numeric value: {entry!r}"
                raise AqaraDeviceQueryError(invalid) from err

    missing = f"Attribute {attr} missing from response"
    raise AqaraDeviceQueryError(missing)


def create_session_client(hass: HomeAssistant) -> httpx.AsyncClient:
    """Create the HTTP client used for the Aqara cloud.

    Args:
        hass: Home Assistant instance.

    Returns:
        httpx AsyncClient managed by Home Assistant.

    """
    return create_async_httpx_client(hass)


class AqaraAirerClient:
    """Stateful client for one Aqara airer reachable through the open cloud.

    The client owns the token session, the resolved device id and the motion
    estimate. The cloud reports no live position, so after a level change
    the position is interpolated from the start level, the target and a
    calibrated speed until a timer marks the move as finished.
    """

    def __init__(  # noqa: PLR0913
        self,
        session: httpx.AsyncClient,
        client_id: str,
        client_secret: str,
        account: str,
        password: str,
        *,
        speed: float = DEFAULT_SPEED,
        base_url: str = BASE_URL,
        redirect_uri: str = REDIRECT_URI,
        contract: CloudContract | None = None,
        resolve_interval: float = DEVICE_RESOLVE_INTERVAL,
        max_resolve_attempts: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the client.

        Args:
            session: HTTP client session.
            client_id: Application id, also sent as the Appid header.
            client_secret: Application secret.
            account: Aqara account name.
            password: Aqara account password.
            speed: Calibration speed in percent of travel per millisecond.
            base_url: Cloud base URL.
            redirect_uri: Redirect URI registered for the application.
            contract: Response envelope shapes of the target cloud.
            resolve_interval: Seconds between device list queries while the
                device id is unresolved.
            max_resolve_attempts: Give up waiting for the device after this
                many queries. None waits forever.
            clock: Wall clock returning epoch seconds.

        """
        if speed <= 0:
            invalid_speed = f"Speed must be positive, got {speed}"
            raise ValueError(invalid_speed)

        self._session = session
        self._client_id = client_id
        self._client_secret = client_secret
        self._account = account
        self._password = password
        self._speed = speed
        self._base_url = base_url.rstrip("/")
        self._redirect_uri = redirect_uri
        self._contract = contract or CloudContract()
        self._resolve_interval = resolve_interval
        self._max_resolve_attempts = max_resolve_attempts
        self._clock = clock

        self._tokens: TokenSession | None = None
        self._refresh_lock = asyncio.Lock()
        self._did: str | None = None

        self._motion: MotionEstimate | None = None
        self._motion_timer: asyncio.TimerHandle | None = None

    @property
    def tokens(self) -> TokenSession | None:
        """Return the current token session, if authenticated."""
        return self._tokens

    @property
    def did(self) -> str | None:
        """Return the resolved device id, if any."""
        return self._did

    @property
    def motion(self) -> MotionEstimate | None:
        """Return the estimate of the move in progress, if any."""
        return self._motion

    def now_ms(self) -> int:
        """Return the current wall clock time in epoch milliseconds."""
        return int(self._clock() * 1000)

    # Auth/session

    async def async_initialize(self) -> None:
        """Authenticate, fetch tokens and resolve the device id, in order.

        Raises:
            AqaraAuthError: If authorization or the token exchange fails.
            AqaraTransportError: If the cloud cannot be reached.

        """
        code = await self.async_authenticate()
        await self.async_exchange_code(code)
        try:
            await self.async_resolve_device_id()
        except AqaraDeviceResolutionPending:
            _LOGGER.warning(
                "No %s device found on the account, device calls will wait",
                AIRER_MODEL,
            )

    async def async_authenticate(self) -> str:
        """Request an authorization code with the account credentials.

        Returns:
            The authorization code extracted from the redirect location.

        Raises:
            AqaraAuthError: If the cloud refuses the credentials or returns no
                code.

        """
        url = f"{self._base_url}/authorize"
        payload = {
            "client_id": self._client_id,
            "response_type": "code",
            "redirect_uri": self._redirect_uri,
            "account": self._account,
            "password": self._password,
        }

        _LOGGER.debug("Requesting authorization code for %s", self._account)
        if self._contract.authorize_via_redirect:
            response = await self._async_send(
                "POST", url, data=payload, follow_redirects=False
            )
            if not response.is_redirect:
                not_redirect = (
                    f"Authorization expected a redirect, got {response.status_code}"
                )
                raise AqaraAuthError(not_redirect)
            location = response.headers.get("location")
        else:
            response = await self._async_send("POST", url, data=payload)
            if is_http_error(response.status_code):
                authorize_error = f"Authorization failed: {response.status_code}"
                raise AqaraAuthError(authorize_error)
            try:
                data = validate_response(response)
            except AqaraRemoteError as err:
                raise AqaraAuthError(str(err)) from err
            if is_api_error(data):
                raise AqaraAuthError(error_message(data))
            location = (data.get("result") or {}).get("location")

        code = extract_code_from_location(location)
        _LOGGER.debug("Received authorization code")
        return code

    async def async_exchange_code(self, code: str) -> TokenSession:
        """Exchange an authorization code for a token session."""
        return await self._async_request_token(
            {"grant_type": "authorization_code", "code": code}
        )

    async def async_refresh(self, refresh_token: str) -> TokenSession:
        """Refresh the token session with a refresh token."""
        _LOGGER.debug("Refreshing access token")
        return await self._async_request_token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )

    async def _async_request_token(self, grant: dict[str, str]) -> TokenSession:
        url = f"{self._base_url}/access_token"
        payload = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "redirect_uri": self._redirect_uri,
            **grant,
        }

        response = await self._async_send("POST", url, data=payload)
        if is_http_error(response.status_code):
            token_error = f"Token request failed: {response.status_code}"
            raise AqaraAuthError(token_error)
        data = validate_response(response)
        if is_api_error(data):
            raise AqaraAuthError(error_message(data))

        body = data.get("result") if self._contract.token_in_result else data
        try:
            tokens = TokenSession(
                access_token=body["access_token"],
                refresh_token=body["refresh_token"],
                expire_at=self.now_ms() + int(body["expires_in"]) * 1000,
            )
        except (KeyError, TypeError, ValueError) as err:
            malformed = f"Malformed token response: {err}"
            raise AqaraAuthError(malformed) from err

        self._tokens = tokens
        _LOGGER.debug("Obtained access token expiring at %d", tokens.expire_at)
        return tokens

    async def async_ensure_fresh_token(self) -> str:
        """Return a usable access token, refreshing it first when expired.

        Concurrent callers share a single refresh.

        Raises:
            AqaraAuthError: If the client never authenticated or the refresh
                fails.

        """
        if self._tokens is None:
            not_authenticated = "Client is not authenticated"
            raise AqaraAuthError(not_authenticated)

        if self._tokens.is_expired(self.now_ms()):
            async with self._refresh_lock:
                if self._tokens.is_expired(self.now_ms()):
                    await self.async_refresh(self._tokens.refresh_token)

        return self._tokens.access_token

    # Device resolution

    async def async_resolve_device_id(self) -> str:
        """Query the device list and remember the airer's did.

        Raises:
            AqaraDeviceResolutionPending: If no device of the supported model
                is on the account.

        """
        data = await self._async_open_request(
            "GET", "/open/device/query", needs_device=False
        )
        if is_api_error(data):
            raise AqaraRemoteError(error_message(data))

        did = find_device_id(data, AIRER_MODEL)
        if did is None:
            pending = f"No device of model {AIRER_MODEL} found"
            raise AqaraDeviceResolutionPending(pending)

        self._did = did
        _LOGGER.info("Resolved airer device %s", did)
        return did

    async def async_wait_for_device(self) -> str:
        """Return the device id, polling the device list until it resolves."""
        attempts = 0
        while self._did is None:
            if (
                self._max_resolve_attempts is not None
                and attempts >= self._max_resolve_attempts
            ):
                gave_up = f"Device not resolved after {attempts} attempts"
                raise AqaraDeviceResolutionPending(gave_up)
            attempts += 1
            await asyncio.sleep(self._resolve_interval)
            if self._did is not None:
                break
            try:
                await self.async_resolve_device_id()
            except AqaraDeviceResolutionPending:
                _LOGGER.debug("Device still unresolved after %d attempts", attempts)
        return self._did

    # Request dispatch

    async def _async_send(
        self,
        method: str,
        url: str,
        **kwargs: Any,  # noqa: ANN401
    ) -> httpx.Response:
        try:
            return await self._session.request(method, url, **kwargs)
        except httpx.RequestError as err:
            transport_error = f"{method} {url} failed: {err}"
            raise AqaraTransportError(transport_error) from err

    async def _async_open_request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        *,
        needs_device: bool = True,
    ) -> dict[str, Any]:
        """Send an authenticated request to an /open endpoint."""
        if needs_device:
            await self.async_wait_for_device()
        access_token = await self.async_ensure_fresh_token()

        kwargs: dict[str, Any] = {
            "headers": create_headers(self._client_id, access_token, self.now_ms())
        }
        if payload is not None:
            kwargs["json"] = payload

        _LOGGER.debug("%s %s %s", method, path, payload)
        response = await self._async_send(method, f"{self._base_url}{path}", **kwargs)
        return validate_response(response)

    # Attribute access

    async def async_get_attribute(self, attr: str) -> int:
        """Query a single attribute of the airer.

        Raises:
            AqaraDeviceQueryError: If the attribute is missing from the response.
            AqaraRemoteError: If the cloud rejects the query.

        """
        did = await self.async_wait_for_device()
        query = {"did": did, "attrs": [attr]}
        if self._contract.resource_query_in_data:
            query = {"data": [query]}

        data = await self._async_open_request("POST", "/open/resource/query", query)
        if is_api_error(data):
            raise AqaraRemoteError(error_message(data))
        return extract_attribute(data, attr)

    async def async_set_attribute(self, attr: str, value: int) -> bool:
        """Update a single attribute of the airer.

        Returns:
            True if the cloud accepted the update, False otherwise.

        """
        did = await self.async_wait_for_device()
        data = await self._async_open_request(
            "POST",
            "/open/resource/update",
            {"did": did, "attrs": {attr: value}},
        )
        result = not is_api_error(data)
        if not result:
            _LOGGER.warning("Update of %s rejected: %s", attr, error_message(data))
        return result

    async def async_get_light_status(self) -> bool:
        """Return True if the light is on."""
        return await self.async_get_attribute(ATTR_LIGHT_CONTROL) != 0

    async def async_set_light_status(self, is_on: bool) -> bool:  # noqa: FBT001
        """Switch the light on or off."""
        return await self.async_set_attribute(ATTR_LIGHT_CONTROL, 1 if is_on else 0)

    async def async_get_level(self) -> int:
        """Return the level reported by the cloud."""
        return await self.async_get_attribute(ATTR_LEVEL)

    async def async_get_position_state(self) -> AirerMotion:
        """Return the motion direction reported by the cloud."""
        return AirerMotion.from_value(
            await self.async_get_attribute(ATTR_AIRER_CONTROL)
        )

    # Motion estimation

    def estimated_level(self) -> int | None:
        """Return the interpolated level while moving, None when idle."""
        if self._motion is None:
            return None
        return self._motion.level_at(self.now_ms())

    async def async_get_estimated_level(self) -> int:
        """Return the interpolated level while moving, else query the cloud."""
        level = self.estimated_level()
        if level is not None:
            return level
        return await self.async_get_level()

    async def async_set_level(
        self,
        level: int,
        on_stopped: Callable[[], None] | None = None,
    ) -> bool:
        """Move the airer to ``level`` and start estimating its position.

        The current level is read before the update is sent. When the cloud
        accepts the update, any move in progress is superseded and a timer
        is armed for the estimated duration of the new move.

        Args:
            level: Target level between 0 and 100.
            on_stopped: Called once when this move is estimated to be done.
                Not called if another move supersedes it.

        Returns:
            True if the cloud accepted the update, False otherwise.

        """
        if not 0 <= level <= 100:  # noqa: PLR2004
            invalid_level = f"Level must be between 0 and 100, got {level}"
            raise ValueError(invalid_level)

        start_level = await self.async_get_level()
        if not await self.async_set_attribute(ATTR_LEVEL, level):
            return False

        estimate = self._start_motion(start_level, level, on_stopped)
        _LOGGER.debug(
            "Moving from %d to %d, estimated to take %.0f ms",
            start_level,
            level,
            estimate.total_duration_ms,
        )
        return True

    async def async_wait_stopped(self) -> None:
        """Wait until no move is estimated to be in progress."""
        while self._motion is not None:
            await asyncio.wait({self._motion.stopped})

    def _start_motion(
        self,
        start_level: int,
        target_level: int,
        on_stopped: Callable[[], None] | None,
    ) -> MotionEstimate:
        self._cancel_motion()

        loop = asyncio.get_running_loop()
        estimate = MotionEstimate(
            start_level=start_level,
            target_level=target_level,
            start_time_ms=self.now_ms(),
            total_duration_ms=abs(target_level - start_level) / self._speed,
            stopped=loop.create_future(),
        )
        self._motion = estimate
        self._motion_timer = loop.call_later(
            estimate.total_duration_ms / 1000,
            self._finish_motion,
            estimate,
            on_stopped,
        )
        return estimate

    def _finish_motion(
        self,
        estimate: MotionEstimate,
        on_stopped: Callable[[], None] | None,
    ) -> None:
        if self._motion is not estimate:
            return

        self._motion = None
        self._motion_timer = None
        if not estimate.stopped.done():
            estimate.stopped.set_result(None)
        _LOGGER.debug("Move to %d estimated complete", estimate.target_level)
        if on_stopped is not None:
            on_stopped()

    def _cancel_motion(self) -> None:
        if self._motion_timer is not None:
            self._motion_timer.cancel()
            self._motion_timer = None
        if self._motion is not None:
            self._motion.stopped.cancel()
            self._motion = None

    async def async_shutdown(self) -> None:
        """Cancel the pending motion timer."""
        self._cancel_motion()
