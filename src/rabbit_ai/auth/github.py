"""GitHub OAuth: authorize URL, code exchange and profile lookup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from rabbit_ai.core.errors import ExternalAuthError

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
API_URL = "https://api.github.com"
SCOPES = ("user:email", "read:user")


@dataclass
class GitHubUser:
    """Subset of the GitHub profile the service stores."""

    id: int
    login: str
    name: str = ""
    email: str = ""
    avatar_url: str = ""
    bio: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.login

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> GitHubUser:
        return cls(
            id=int(data["id"]),
            login=data.get("login") or "",
            name=data.get("name") or "",
            email=data.get("email") or "",
            avatar_url=data.get("avatar_url") or "",
            bio=data.get("bio") or "",
        )


class GitHubOAuth:
    """OAuth web-flow client for a single GitHub OAuth app."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_url = redirect_url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def get_auth_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_url,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "state": state,
            "access_type": "offline",
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> str:
        """Exchange an authorization code for an access token."""
        try:
            response = await self._client.post(
                TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "redirect_uri": self.redirect_url,
                },
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise ExternalAuthError(f"Failed to exchange code for token: {e}") from e

        if response.status_code != 200:
            raise ExternalAuthError(
                f"GitHub token endpoint returned status: {response.status_code}"
            )
        payload = response.json()
        token = payload.get("access_token")
        if not token:
            reason = payload.get("error_description") or payload.get("error") or "no access token"
            raise ExternalAuthError(f"Failed to exchange code for token: {reason}")
        return token

    async def _get(self, path: str, token: str) -> Any:
        try:
            response = await self._client.get(
                f"{API_URL}{path}",
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/vnd.github+json",
                },
            )
        except httpx.HTTPError as e:
            raise ExternalAuthError(f"GitHub API request failed: {e}") from e
        if response.status_code != 200:
            raise ExternalAuthError(f"GitHub API returned status: {response.status_code}")
        return response.json()

    async def get_user_info(self, token: str) -> GitHubUser:
        """Fetch the profile; fill in the primary (or first) email if it is private."""
        user = GitHubUser.from_api(await self._get("/user", token))
        if not user.email:
            emails = await self._get("/user/emails", token)
            primary = next((e["email"] for e in emails if e.get("primary")), "")
            if not primary and emails:
                primary = emails[0]["email"]
            user.email = primary
        return user

    async def close(self) -> None:
        await self._client.aclose()
