"""
Registry v2 HTTP inspector.

Talks to a registry's distribution API directly instead of shelling out to
skopeo. The digest is read from the ``Docker-Content-Digest`` header of a
``HEAD /v2/<name>/manifests/<reference>`` request.

Anonymous pulls are supported through the bearer-token challenge that
docker.io, quay.io and most other registries answer 401 with.

Usage:
    async with RegistryHTTPInspector() as inspector:
        metadata = await inspector.inspect(ImageReference.parse("quay.io/kubevirt/virt-api:v0.34.0"))
        metadata["Digest"]
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from hcobundle.errors import RegistryUnavailable

from .images import ImageReference

logger = logging.getLogger(__name__)


MANIFEST_MEDIA_TYPES = (
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.docker.distribution.manifest.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
)

DOCKER_HUB_HOST = "registry-1.docker.io"

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


def parse_bearer_challenge(header: str) -> dict[str, str]:
    """
    Parse a ``WWW-Authenticate: Bearer ...`` header into its parameters.

    Returns an empty dict for non-bearer challenges.
    """
    scheme, _, params = header.partition(" ")
    if scheme.lower() != "bearer":
        return {}
    return dict(_CHALLENGE_PARAM.findall(params))


class RegistryHTTPInspector:
    """
    Inspects images through the registry v2 HTTP API.

    Args:
        timeout: Request timeout in seconds (httpx default when None)
        transport: Optional httpx transport, used by tests
        insecure_registries: Hosts reached over plain http
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        insecure_registries: tuple[str, ...] = (),
    ):
        self._timeout = timeout
        self._transport = transport
        self._insecure = set(insecure_registries)
        self._client: httpx.AsyncClient | None = None
        self._tokens: dict[str, str] = {}

    @property
    def name(self) -> str:
        return "registry-http"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            kwargs: dict[str, Any] = {"follow_redirects": True}
            if self._timeout is not None:
                kwargs["timeout"] = self._timeout
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _manifest_url(self, image: ImageReference) -> str:
        host = image.registry
        path = image.path
        if host == "docker.io":
            host = DOCKER_HUB_HOST
            if "/" not in path:
                path = f"library/{path}"
        scheme = "http" if host in self._insecure else "https"
        return f"{scheme}://{host}/v2/{path}/manifests/{image.reference}"

    async def _fetch_token(self, challenge: dict[str, str], image: ImageReference) -> str:
        realm = challenge.get("realm")
        if not realm:
            raise RegistryUnavailable(
                f"Registry for {image} requested authentication without a realm",
                stage="resolve",
            )

        params = {k: v for k, v in challenge.items() if k in ("service", "scope")}
        client = await self._get_client()
        response = await client.get(realm, params=params)
        if not response.is_success:
            raise RegistryUnavailable(
                f"Token request for {image} failed (status={response.status_code})",
                stage="resolve",
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RegistryUnavailable(
                f"Unparsable token response for {image}: {e}",
                stage="resolve",
            ) from e
        token = body.get("token") or body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise RegistryUnavailable(f"Token response for {image} has no token", stage="resolve")
        return token

    async def _head_manifest(self, url: str, token: str | None) -> httpx.Response:
        headers = {"Accept": ", ".join(MANIFEST_MEDIA_TYPES)}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        client = await self._get_client()
        return await client.head(url, headers=headers)

    async def inspect(self, image: ImageReference) -> dict[str, Any]:
        url = self._manifest_url(image)
        logger.debug(f"[{self.name}] HEAD {url}")

        try:
            token = self._tokens.get(image.repository)
            response = await self._head_manifest(url, token)

            if response.status_code == 401:
                challenge = parse_bearer_challenge(response.headers.get("WWW-Authenticate", ""))
                token = await self._fetch_token(challenge, image)
                self._tokens[image.repository] = token
                response = await self._head_manifest(url, token)

        except httpx.TimeoutException as e:
            raise RegistryUnavailable(
                f"Request timeout inspecting {image}: {e}",
                stage="resolve",
                command=f"HEAD {url}",
            ) from e
        except httpx.HTTPError as e:
            raise RegistryUnavailable(
                f"Network error inspecting {image}: {e}",
                stage="resolve",
                command=f"HEAD {url}",
            ) from e

        if not response.is_success:
            raise RegistryUnavailable(
                f"Inspection of {image} failed (status={response.status_code})",
                stage="resolve",
                command=f"HEAD {url}",
            )

        metadata: dict[str, Any] = {
            "Name": image.repository,
            "MediaType": response.headers.get("Content-Type", ""),
        }
        if image.tag:
            metadata["Tag"] = image.tag
        digest = response.headers.get("Docker-Content-Digest")
        if digest:
            metadata["Digest"] = digest
        return metadata

    async def __aenter__(self) -> RegistryHTTPInspector:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
