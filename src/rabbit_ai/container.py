"""Explicit wiring of every component.

Clients for Redis, the database and external APIs are created once here
and passed down through constructors. Nothing else in the package reads
settings or holds module-level connections.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from redis.asyncio import Redis

from rabbit_ai.auth.aliyun import AliyunOneClick
from rabbit_ai.auth.github import GitHubOAuth
from rabbit_ai.cache.conversation_cache import ConversationCache
from rabbit_ai.cache.keys import CacheTTLs
from rabbit_ai.cache.manager import CacheManager
from rabbit_ai.cache.redis import RedisCache, create_redis
from rabbit_ai.cache.user_cache import UserCache
from rabbit_ai.chat.client import MiniMaxClient
from rabbit_ai.config import Settings
from rabbit_ai.persistence.cached import CachedUserRepository
from rabbit_ai.persistence.db import Database
from rabbit_ai.persistence.repositories import (
    ConversationRepository,
    MessageRepository,
    SqlConversationRepository,
    SqlMessageRepository,
    SqlUserRepository,
    UserRepository,
)
from rabbit_ai.security.tokens import TokenSigner
from rabbit_ai.services.auth import AuthService
from rabbit_ai.services.conversation import ConversationService
from rabbit_ai.services.device import DeviceService
from rabbit_ai.services.user import UserService

logger = logging.getLogger(__name__)


@dataclass
class Repositories:
    users: UserRepository
    conversations: ConversationRepository
    messages: MessageRepository


@dataclass
class AppContainer:
    settings: Settings
    database: Database | None
    store: RedisCache
    user_cache: UserCache
    conversation_cache: ConversationCache
    cache_manager: CacheManager
    users: CachedUserRepository
    repositories: Repositories
    tokens: TokenSigner
    chat: MiniMaxClient
    github: GitHubOAuth
    aliyun: AliyunOneClick
    auth_service: AuthService
    user_service: UserService
    device_service: DeviceService
    conversation_service: ConversationService

    async def close(self) -> None:
        """Release every client the container created."""
        await self.chat.close()
        await self.github.close()
        await self.aliyun.close()
        await self.store.close()
        if self.database is not None:
            await self.database.close()
        logger.info("Container closed")


def build_container(
    settings: Settings,
    *,
    redis_client: Redis | None = None,
    repositories: Repositories | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> AppContainer:
    """Build the component graph.

    Args:
        settings: Loaded settings.
        redis_client: Use this Redis client instead of connecting to REDIS_URL.
        repositories: Use these repositories instead of the SQL ones.
        http_transport: Transport for all outbound HTTP clients (tests).
    """
    database = None
    if repositories is None:
        database = Database(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=settings.db_pool_recycle,
        )
        repositories = Repositories(
            users=SqlUserRepository(database),
            conversations=SqlConversationRepository(database),
            messages=SqlMessageRepository(database),
        )

    if redis_client is None:
        redis_client = create_redis(settings.redis_url)
    store = RedisCache(redis_client)
    ttls = CacheTTLs(
        user=settings.cache_user_ttl,
        conversation=settings.cache_conversation_ttl,
        message=settings.cache_message_ttl,
        user_conversations=settings.cache_user_conversations_ttl,
        conversation_messages=settings.cache_conversation_messages_ttl,
    )
    user_cache = UserCache(store, ttl=ttls.user)
    conversation_cache = ConversationCache(store, ttls)
    users = CachedUserRepository(repositories.users, user_cache)

    tokens = TokenSigner(
        settings.jwt_secret, expire_hours=settings.jwt_expire_hours, issuer=settings.jwt_issuer
    )
    chat = MiniMaxClient(
        settings.minimax_api_key,
        base_url=settings.minimax_base_url,
        timeout=settings.minimax_timeout,
        default_model=settings.chat_default_model,
        transport=http_transport,
    )
    github = GitHubOAuth(
        settings.github_client_id,
        settings.github_client_secret,
        settings.github_redirect_url,
        transport=http_transport,
    )
    aliyun = AliyunOneClick(
        settings.aliyun_access_key_id,
        settings.aliyun_access_key_secret,
        app_id=settings.aliyun_one_click_app_id,
        region=settings.aliyun_region,
        transport=http_transport,
    )

    return AppContainer(
        settings=settings,
        database=database,
        store=store,
        user_cache=user_cache,
        conversation_cache=conversation_cache,
        cache_manager=CacheManager(user_cache, store),
        users=users,
        repositories=repositories,
        tokens=tokens,
        chat=chat,
        github=github,
        aliyun=aliyun,
        auth_service=AuthService(users, tokens, aliyun=aliyun, github=github),
        user_service=UserService(users),
        device_service=DeviceService(users),
        conversation_service=ConversationService(
            repositories.conversations,
            repositories.messages,
            repositories.users,
            conversation_cache,
            chat,
            default_model=settings.chat_default_model,
        ),
    )
