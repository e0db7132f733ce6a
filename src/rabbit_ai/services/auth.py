"""Login and registration flows. Every successful flow returns a token + user."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Any

from rabbit_ai.auth.aliyun import AliyunOneClick
from rabbit_ai.auth.github import GitHubOAuth
from rabbit_ai.core.errors import AccountDisabledError, UserAlreadyExistsError, ValidationError
from rabbit_ai.core.models import User
from rabbit_ai.persistence.repositories import UserRepository
from rabbit_ai.security.tokens import TokenSigner

logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    token: str
    user: User

    def to_dict(self) -> dict[str, Any]:
        return {"token": self.token, "user": self.user.public_dict()}


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        tokens: TokenSigner,
        aliyun: AliyunOneClick | None = None,
        github: GitHubOAuth | None = None,
    ):
        self.users = users
        self.tokens = tokens
        self.aliyun = aliyun
        self.github = github

    def _result(self, user: User) -> LoginResult:
        return LoginResult(self.tokens.issue(user.id), user)

    async def one_click_login(self, auth_code: str, platform: str = "") -> LoginResult:
        """Aliyun one-click login: resolve the phone, then get or create its user."""
        if self.aliyun is None:
            raise ValidationError("One-click login is not configured")
        phone = await self.aliyun.get_mobile(auth_code)

        user = await self.users.get_by_phone(phone)
        if user is None:
            user = await self.users.create(
                User(phone=phone, nickname=f"用户{phone[-4:]}", platform=platform)
            )
            logger.info("Created user %s via one-click login", user.id)
        if not user.is_active:
            raise AccountDisabledError()
        return self._result(user)

    async def password_login(self, phone: str, password: str) -> LoginResult:
        user = await self.users.verify_password(phone, password)
        if not user.is_active:
            raise AccountDisabledError()
        return self._result(user)

    async def register(
        self, phone: str, password: str, nickname: str, platform: str = ""
    ) -> LoginResult:
        if await self.users.get_by_phone(phone) is not None:
            raise UserAlreadyExistsError(phone)
        user = await self.users.create_with_password(
            User(phone=phone, nickname=nickname, platform=platform), password
        )
        logger.info("Registered user %s", user.id)
        return self._result(user)

    def github_auth_url(self, state: str | None = None) -> tuple[str, str]:
        """Authorize URL and the state value embedded in it."""
        if self.github is None:
            raise ValidationError("GitHub login is not configured")
        state = state or secrets.token_urlsafe(16)
        return self.github.get_auth_url(state), state

    async def github_login(self, code: str) -> LoginResult:
        """Exchange the code, then create or refresh the linked user."""
        if self.github is None:
            raise ValidationError("GitHub login is not configured")
        access_token = await self.github.exchange_code(code)
        profile = await self.github.get_user_info(access_token)
        github_id = str(profile.id)

        user = await self.users.get_by_github_id(github_id)
        if user is None:
            user = await self.users.create(
                User(
                    github_id=github_id,
                    email=profile.email or None,
                    nickname=profile.display_name,
                    avatar=profile.avatar_url,
                )
            )
            logger.info("Created user %s via GitHub login", user.id)
        else:
            user = await self.users.update(
                user.model_copy(
                    update={
                        "nickname": profile.display_name,
                        "avatar": profile.avatar_url,
                        "email": profile.email or None,
                    }
                )
            )
        if not user.is_active:
            raise AccountDisabledError()
        return self._result(user)
