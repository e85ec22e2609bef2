from typing import Any

import requests
from requests import HTTPError, RequestException

from leadms.config import settings
from leadms.utils.logger import get_logger

logger = get_logger(__name__)


class AuthError(RuntimeError):
    """Represents a failed call against the hosted auth service."""

    def __init__(self, endpoint: str, status_code: int | None = None, detail: str | None = None):
        detail = detail or "Auth request failed without details."
        super().__init__(detail)
        self.endpoint = endpoint
        self.status_code = status_code
        self.detail = detail


def _error_detail(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(data, dict):
        for key in ("error_description", "msg", "message", "error"):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return response.text.strip()


class SupabaseAuthClient:
    """Credential checks and session issuance through the GoTrue REST API.

    One attempt per call; a failed sign-in is reported to the user, who
    decides whether to try again.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.supabase_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.supabase_anon_key
        self.timeout = timeout or settings.auth_timeout

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/auth/v1{endpoint}"

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    def _request(
        self,
        method: str,
        endpoint: str,
        payload: dict | None = None,
        params: dict | None = None,
        access_token: str | None = None,
    ) -> dict[str, Any]:
        try:
            response = requests.request(
                method,
                self._url(endpoint),
                json=payload,
                params=params,
                headers=self._headers(access_token),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            detail = _error_detail(exc.response) if exc.response is not None else str(exc)
            logger.warning("Auth %s returned %s; detail=%s", endpoint, status_code, detail)
            raise AuthError(endpoint, status_code, detail) from exc
        except RequestException as exc:
            logger.warning("Network failure when calling auth %s: %s", endpoint, exc)
            raise AuthError(endpoint, None, str(exc)) from exc

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise AuthError(endpoint, response.status_code, "Auth response was not JSON.") from exc

    def sign_in(self, email: str, password: str) -> dict[str, Any]:
        return self._request(
            "POST",
            "/token",
            payload={"email": email, "password": password},
            params={"grant_type": "password"},
        )

    def sign_up(self, email: str, password: str) -> dict[str, Any]:
        return self._request("POST", "/signup", payload={"email": email, "password": password})

    def reset_password(self, email: str) -> None:
        params = None
        if settings.password_reset_redirect:
            params = {"redirect_to": settings.password_reset_redirect}
        self._request("POST", "/recover", payload={"email": email}, params=params)

    def get_user(self, access_token: str) -> dict[str, Any]:
        return self._request("GET", "/user", access_token=access_token)

    def sign_out(self, access_token: str) -> None:
        self._request("POST", "/logout", access_token=access_token)
