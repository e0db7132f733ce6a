"""External identity providers."""

from rabbit_ai.auth.aliyun import AliyunOneClick
from rabbit_ai.auth.github import GitHubOAuth, GitHubUser

__all__ = ["AliyunOneClick", "GitHubOAuth", "GitHubUser"]
