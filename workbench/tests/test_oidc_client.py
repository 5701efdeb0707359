import asyncio
import unittest
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import httpx

from workbench import oidc_client
from workbench.config import Settings
from workbench.errors import IdentityProviderError
from workbench.oidc_client import OidcClient

DISCOVERY = {
    "authorization_endpoint": "https://idp.test/authorize",
    "token_endpoint": "https://idp.test/token",
}


def html_response(method: str, url: str) -> httpx.Response:
    return httpx.Response(
        200, text="<html>oops</html>", request=httpx.Request(method, url)
    )


class OidcClientTests(unittest.TestCase):
    def setUp(self):
        self.settings = Settings(
            oidc_issuer="https://idp.test/",
            oidc_client_id="client-id",
            oidc_redirect_uri="http://localhost:5000/auth/google/callback",
        )
        self.client = OidcClient(self.settings)
        patcher = patch.dict(
            oidc_client._provider_metadata, {"https://idp.test": DISCOVERY}
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_login_url(self):
        url = asyncio.run(self.client.login_url("state-123"))
        parsed = urlparse(url)
        params = parse_qs(parsed.query)
        self.assertEqual(
            f"{parsed.scheme}://{parsed.netloc}{parsed.path}",
            DISCOVERY["authorization_endpoint"],
        )
        self.assertEqual(params["state"], ["state-123"])
        self.assertEqual(params["scope"], ["openid profile email"])
        self.assertEqual(
            params["redirect_uri"], ["http://localhost:5000/auth/google/callback"]
        )

    def test_missing_client_configuration(self):
        client = OidcClient(Settings(oidc_issuer="https://idp.test"))
        with self.assertRaises(IdentityProviderError):
            asyncio.run(client.login_url("state"))
        with self.assertRaises(IdentityProviderError):
            asyncio.run(client.exchange_code("code"))

    def test_userinfo_without_endpoint(self):
        self.assertEqual(asyncio.run(self.client.userinfo("token")), {})

    def test_non_json_token_response(self):
        response = html_response("POST", DISCOVERY["token_endpoint"])
        with patch.object(
            httpx.AsyncClient, "request", new=AsyncMock(return_value=response)
        ):
            with self.assertRaises(IdentityProviderError):
                asyncio.run(self.client.exchange_code("code"))

    def test_token_error_status(self):
        response = httpx.Response(
            400,
            json={"error": "invalid_grant"},
            request=httpx.Request("POST", DISCOVERY["token_endpoint"]),
        )
        with patch.object(
            httpx.AsyncClient, "request", new=AsyncMock(return_value=response)
        ):
            with self.assertRaisesRegex(IdentityProviderError, "HTTP 400"):
                asyncio.run(self.client.exchange_code("code"))

    def test_token_response_without_access_token(self):
        response = httpx.Response(
            200,
            json={"token_type": "Bearer"},
            request=httpx.Request("POST", DISCOVERY["token_endpoint"]),
        )
        with patch.object(
            httpx.AsyncClient, "request", new=AsyncMock(return_value=response)
        ):
            with self.assertRaises(IdentityProviderError):
                asyncio.run(self.client.exchange_code("code"))

    def test_transport_error(self):
        with patch.object(
            httpx.AsyncClient,
            "request",
            new=AsyncMock(side_effect=httpx.ConnectError("unreachable")),
        ):
            with self.assertRaises(IdentityProviderError):
                asyncio.run(self.client.exchange_code("code"))

    def test_metadata_is_fetched_once_per_issuer(self):
        other = OidcClient(Settings(oidc_issuer="https://other.test"))
        response = httpx.Response(
            200,
            json=DISCOVERY,
            request=httpx.Request("GET", "https://other.test/"),
        )
        request = AsyncMock(return_value=response)
        with patch.object(httpx.AsyncClient, "request", new=request):
            asyncio.run(other.metadata())
            asyncio.run(other.metadata())
        request.assert_awaited_once_with(
            "GET", "https://other.test/.well-known/openid-configuration"
        )
        self.assertEqual(oidc_client._provider_metadata["https://other.test"], DISCOVERY)


if __name__ == "__main__":
    unittest.main()
