# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""OAuth2 client-credentials exchange over httpx."""

import httpx
from pydantic import ValidationError

from ..api.errors import AuthenticationError
from ..api.models import OAuthToken
from ..core.logging import get_logger


class OAuthTokenClient:
    """
    Exchange an application id/secret pair for a bearer access token.

    `http` may be injected (tests pass an `httpx.AsyncClient` backed by a
    MockTransport); otherwise a short-lived client is opened per call.
    """

    def __init__(self, token_url: str, *, timeout_sec: float = 30.0, http: httpx.AsyncClient | None = None) -> None:
        self.token_url = token_url
        self.timeout_sec = timeout_sec
        self._http = http
        self.log = get_logger("clients.oauth")

    async def fetch_token(self, application_id: str, application_secret: str) -> OAuthToken:
        form = {
            "grant_type": "client_credentials",
            "client_id": application_id,
            "client_secret": application_secret,
        }
        try:
            if self._http is not None:
                resp = await self._http.post(self.token_url, data=form)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_sec) as http:
                    resp = await http.post(self.token_url, data=form)
        except httpx.HTTPError as e:
            raise AuthenticationError(f"access token request failed: {e}") from e

        if resp.status_code != 200:
            raise AuthenticationError(f"access token request failed with status {resp.status_code}: {resp.text[:200]}")
        try:
            token = OAuthToken.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise AuthenticationError(f"access token response is malformed: {e}") from e

        self.log.debug("access token obtained", application_id=application_id, expires_in=token.expires_in)
        return token


__all__ = ["OAuthTokenClient"]
