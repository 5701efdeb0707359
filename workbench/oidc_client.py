"""
OpenID Connect authorization-code client for the external identity provider.

Every failure talking to the provider (missing client configuration,
transport errors, error statuses, bodies that are not JSON objects) is
raised as ``IdentityProviderError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from workbench.config import Settings
from workbench.errors import IdentityProviderError

TIMEOUT_SECONDS = 15

# Provider metadata by issuer URL, fetched once per process.
_provider_metadata: dict[str, dict] = {}


def _json_object(response: httpx.Response, what: str) -> dict:
    if response.status_code >= 400:
        raise IdentityProviderError(
            f"{what} failed with HTTP {response.status_code}: {response.text[:200]}"
        )
    try:
        body = response.json()
    except ValueError as exc:
        raise IdentityProviderError(f"{what} returned a non-JSON body") from exc
    if not isinstance(body, dict):
        raise IdentityProviderError(f"{what} returned {type(body).__name__}, not an object")
    return body


@dataclass
class OidcClient:
    settings: Settings

    @property
    def issuer(self) -> str:
        return self.settings.oidc_issuer.rstrip("/")

    def _require_client(self) -> None:
        if not (self.settings.oidc_client_id and self.settings.oidc_redirect_uri):
            raise IdentityProviderError("OIDC_CLIENT_ID / OIDC_REDIRECT_URI not set")

    async def _request(self, what: str, method: str, url: str, **kwargs) -> dict:
        try:
            async with httpx.AsyncClient(timeout=TIMEOUT_SECONDS) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise IdentityProviderError(f"{what} failed: {exc}") from exc
        return _json_object(response, what)

    async def metadata(self) -> dict:
        if not self.issuer:
            raise IdentityProviderError("OIDC_ISSUER is not set")
        cached = _provider_metadata.get(self.issuer)
        if cached is None:
            cached = await self._request(
                "OIDC discovery",
                "GET",
                f"{self.issuer}/.well-known/openid-configuration",
            )
            _provider_metadata[self.issuer] = cached
        return cached

    async def _endpoint(self, name: str) -> Optional[str]:
        return (await self.metadata()).get(name)

    async def login_url(self, state: str) -> str:
        """Build the provider's /authorize URL for the code flow."""
        self._require_client()
        endpoint = await self._endpoint("authorization_endpoint")
        if not endpoint:
            raise IdentityProviderError("Provider has no authorization endpoint")
        params = {
            "response_type": "code",
            "client_id": self.settings.oidc_client_id,
            "redirect_uri": self.settings.oidc_redirect_uri,
            "scope": self.settings.oidc_scopes,
            "state": state,
        }
        return f"{endpoint}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> dict:
        self._require_client()
        endpoint = await self._endpoint("token_endpoint")
        if not endpoint:
            raise IdentityProviderError("Provider has no token endpoint")
        form = {
            "grant_type": "authorization_code",
            "client_id": self.settings.oidc_client_id,
            "redirect_uri": self.settings.oidc_redirect_uri,
            "code": code,
        }
        if self.settings.oidc_client_secret:
            form["client_secret"] = self.settings.oidc_client_secret
        tokens = await self._request(
            "Token exchange",
            "POST",
            endpoint,
            data=form,
            headers={"Accept": "application/json"},
        )
        if not tokens.get("access_token"):
            raise IdentityProviderError("Token response has no access_token")
        return tokens

    async def userinfo(self, access_token: str) -> dict:
        endpoint = await self._endpoint("userinfo_endpoint")
        if not endpoint:
            return {}
        return await self._request(
            "Userinfo",
            "GET",
            endpoint,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )
