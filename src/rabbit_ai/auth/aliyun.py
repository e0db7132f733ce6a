"""Aliyun one-click login: resolve a client auth token to a phone number.

Calls the Dypnsapi `GetMobile` RPC action, signed with the account's
AccessKey using the RPC HMAC-SHA1 signature scheme.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import uuid
from datetime import datetime, timezone
from urllib.parse import quote

import httpx

from rabbit_ai.core.errors import ExternalAuthError

logger = logging.getLogger(__name__)

ENDPOINT = "https://dypnsapi.aliyuncs.com/"
API_VERSION = "2017-05-25"


def _percent_encode(value: str) -> str:
    return quote(value, safe="~")


def sign(params: dict[str, str], secret: str, method: str = "POST") -> str:
    """Compute the RPC signature for a parameter set."""
    canonical = "&".join(
        f"{_percent_encode(k)}={_percent_encode(v)}" for k, v in sorted(params.items())
    )
    string_to_sign = f"{method}&{_percent_encode('/')}&{_percent_encode(canonical)}"
    digest = hmac.new(
        f"{secret}&".encode("utf-8"), string_to_sign.encode("utf-8"), hashlib.sha1
    ).digest()
    return base64.b64encode(digest).decode("ascii")


class AliyunOneClick:
    """Client for the one-click phone number lookup."""

    def __init__(
        self,
        access_key_id: str,
        access_key_secret: str,
        app_id: str = "",
        region: str = "cn-hangzhou",
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ):
        self.access_key_id = access_key_id
        self.access_key_secret = access_key_secret
        self.app_id = app_id
        self.region = region
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def _params(self, auth_code: str) -> dict[str, str]:
        params = {
            "Action": "GetMobile",
            "Version": API_VERSION,
            "Format": "JSON",
            "AccessKeyId": self.access_key_id,
            "RegionId": self.region,
            "Timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "SignatureMethod": "HMAC-SHA1",
            "SignatureVersion": "1.0",
            "SignatureNonce": uuid.uuid4().hex,
            "AccessToken": auth_code,
        }
        if self.app_id:
            params["AppId"] = self.app_id
        params["Signature"] = sign(params, self.access_key_secret)
        return params

    async def get_mobile(self, auth_code: str) -> str:
        """Return the phone number bound to a one-click auth code."""
        try:
            response = await self._client.post(ENDPOINT, data=self._params(auth_code))
            result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalAuthError(f"Failed to get phone from aliyun: {e}") from e

        if result.get("Code") != "OK":
            raise ExternalAuthError(f"Aliyun API error: {result.get('Message', 'unknown')}")

        mobile = (result.get("GetMobileResultDTO") or result.get("Data") or {}).get("Mobile")
        if not mobile:
            raise ExternalAuthError("Aliyun API returned no phone number")
        return mobile

    async def close(self) -> None:
        await self._client.aclose()
