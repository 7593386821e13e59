"""GitHub OAuth device flow and the few REST calls git-id needs."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from git_id import __version__
from git_id.exceptions import GitHubAuthError

logger = logging.getLogger(__name__)

CLIENT_ID = "Ov23liig7GSttaj33WLN"
SCOPES = "read:user user:email admin:public_key"

DEVICE_CODE_URL = "https://github.com/login/device/code"
ACCESS_TOKEN_URL = "https://github.com/login/oauth/access_token"
API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"

DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
SLOW_DOWN_STEP = 5


@dataclass
class DeviceCode:
    device_code: str
    user_code: str
    verification_uri: str
    expires_in: int
    interval: int = 5


@dataclass
class GitHubUser:
    login: str
    name: str | None = None
    email: str | None = None


class GitHubClient:
    """Thin synchronous GitHub client.

    Pass ``client`` to supply a preconfigured ``httpx.Client`` (tests use a
    ``MockTransport``).
    """

    def __init__(
        self,
        token: str | None = None,
        client: httpx.Client | None = None,
        client_id: str = CLIENT_ID,
    ):
        self.token = token
        self.client_id = client_id
        self._client = client or httpx.Client(timeout=30.0)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Device flow
    # ------------------------------------------------------------------

    def _post_form(self, url: str, data: dict[str, str]) -> dict[str, Any]:
        try:
            response = self._client.post(
                url, data=data, headers={"Accept": "application/json"}
            )
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GitHubAuthError(f"Invalid response from GitHub: {e}") from e

    def request_device_code(self) -> DeviceCode:
        payload = self._post_form(
            DEVICE_CODE_URL, {"client_id": self.client_id, "scope": SCOPES}
        )
        if "error" in payload:
            raise GitHubAuthError(payload.get("error_description") or payload["error"])
        try:
            return DeviceCode(
                device_code=payload["device_code"],
                user_code=payload["user_code"],
                verification_uri=payload["verification_uri"],
                expires_in=int(payload["expires_in"]),
                interval=int(payload.get("interval") or 5),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise GitHubAuthError(f"Invalid device code response: {e}") from e

    def poll_for_token(
        self,
        device: DeviceCode,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> str:
        """Poll until the user authorizes the device, then return the token."""
        interval = device.interval
        expires_at = clock() + device.expires_in

        while clock() < expires_at:
            sleep(interval)
            payload = self._post_form(
                ACCESS_TOKEN_URL,
                {
                    "client_id": self.client_id,
                    "device_code": device.device_code,
                    "grant_type": DEVICE_GRANT_TYPE,
                },
            )
            token = payload.get("access_token")
            if token:
                self.token = token
                return token

            error = payload.get("error")
            if error == "authorization_pending":
                continue
            if error == "slow_down":
                interval = int(payload.get("interval") or interval + SLOW_DOWN_STEP)
                logger.debug("GitHub asked to slow down; polling every %ss", interval)
                continue
            if error == "expired_token":
                raise GitHubAuthError("Authorization expired. Please try again.")
            if error == "access_denied":
                raise GitHubAuthError("Authorization was denied.")
            raise GitHubAuthError(payload.get("error_description") or error or "Unknown error")

        raise GitHubAuthError("Authorization timed out. Please try again.")

    # ------------------------------------------------------------------
    # REST
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        if not self.token:
            raise GitHubAuthError("Not authenticated with GitHub")
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": f"git-id/{__version__}",
            "X-GitHub-Api-Version": API_VERSION,
        }

    def get_user(self) -> GitHubUser | None:
        try:
            response = self._client.get(f"{API_URL}/user", headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning("GitHub /user request failed: %s", e)
            return None
        if response.status_code != 200:
            logger.debug("GitHub /user returned %s", response.status_code)
            return None
        data = response.json()
        return GitHubUser(login=data["login"], name=data.get("name"), email=data.get("email"))

    def get_primary_email(self) -> str | None:
        try:
            response = self._client.get(f"{API_URL}/user/emails", headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning("GitHub /user/emails request failed: %s", e)
            return None
        if response.status_code != 200:
            return None
        emails = response.json()
        if not emails:
            return None
        for entry in emails:
            if entry.get("primary"):
                return entry.get("email")
        return emails[0].get("email")

    def upload_ssh_key(self, public_key: str, title: str) -> bool:
        """Upload a public key; an already registered key counts as success."""
        try:
            response = self._client.post(
                f"{API_URL}/user/keys",
                headers=self._headers(),
                json={"title": title, "key": public_key},
            )
        except httpx.HTTPError as e:
            logger.warning("Uploading SSH key failed: %s", e)
            return False
        if response.status_code == 201:
            return True
        if response.status_code == 422:
            logger.info("SSH key already exists on GitHub")
            return True
        logger.warning("Uploading SSH key failed with status %s", response.status_code)
        return False
