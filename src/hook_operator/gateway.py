"""Remote gateway to the control plane.

The core only depends on the RemoteGateway protocol. RestGateway is the
production implementation over azure-core's HTTP pipeline; tests inject an
in-memory gateway instead.

Gateways signal failures with azure-core exceptions: ResourceNotFoundError
for a missing identity and HttpResponseError for everything else.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol
from urllib.parse import quote

from azure.core import PipelineClient
from azure.core.credentials import TokenCredential
from azure.core.exceptions import (
    ClientAuthenticationError,
    DecodeError,
    HttpResponseError,
    ResourceNotFoundError,
    map_error,
)
from azure.core.pipeline.policies import (
    BearerTokenCredentialPolicy,
    ContentDecodePolicy,
    HeadersPolicy,
    HttpLoggingPolicy,
    UserAgentPolicy,
)
from azure.core.rest import HttpRequest

from .config import DEFAULT_REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

USER_AGENT = "hook-operator/0.1.0"
LIFECYCLE_HOOKS_PATH = "/lifecycleHooks"

# Status codes mapped onto specific azure-core exceptions
ERROR_MAP: dict[int, type[HttpResponseError]] = {
    401: ClientAuthenticationError,
    404: ResourceNotFoundError,
}


class RemoteGateway(Protocol):
    """Operations consumed from the control plane."""

    def create(self, request: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """Create a hook. Returns (assigned identity, raw response)."""
        ...

    def describe(self, identity: str) -> dict[str, Any]:
        """Return the current field map. Raises ResourceNotFoundError if absent."""
        ...

    def update(self, identity: str, request: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update. Returns the raw response."""
        ...

    def delete(self, identity: str) -> dict[str, Any]:
        """Delete a hook. Raises ResourceNotFoundError if already absent."""
        ...

    def close(self) -> None:
        """Release the underlying transport."""
        ...


class RestGateway:
    """JSON REST gateway built on azure-core's PipelineClient.

    The credential is passed in explicitly; no client is shared across
    gateways.

    Args:
        endpoint: Base https URL of the control plane.
        credential: Token credential for bearer authentication (optional).
        token_scope: Scope requested for the bearer token.
        request_timeout_seconds: Per-request read timeout.
        client: Pre-built PipelineClient, mainly for tests.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        credential: TokenCredential | None = None,
        token_scope: str | None = None,
        request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        client: PipelineClient | None = None,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._timeout = request_timeout_seconds
        if client is None:
            policies: list[Any] = [
                HeadersPolicy({"Accept": "application/json"}),
                UserAgentPolicy(user_agent=USER_AGENT),
                ContentDecodePolicy(),
            ]
            if credential is not None:
                scope = token_scope or f"{self._endpoint}/.default"
                policies.append(BearerTokenCredentialPolicy(credential, scope))
            policies.append(HttpLoggingPolicy())
            client = PipelineClient(base_url=self._endpoint, policies=policies)
        self._client = client

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> RestGateway:
        return self

    def __exit__(self, *exc_details: Any) -> None:
        self.close()

    def _hook_url(self, identity: str | None = None) -> str:
        if identity is None:
            return self._client.format_url(LIFECYCLE_HOOKS_PATH)
        return self._client.format_url(
            LIFECYCLE_HOOKS_PATH + "/{identity}",
            identity=quote(identity, safe=""),
        )

    def _send(self, method: str, url: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        request = HttpRequest(method, url, json=body)
        response = self._client.send_request(request, stream=False, read_timeout=self._timeout)

        if response.status_code not in (200, 201, 202, 204):
            map_error(status_code=response.status_code, response=response, error_map=ERROR_MAP)
            raise HttpResponseError(response=response)

        if response.status_code == 204 or not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(
                message=f"Undecodable response body from {method} {url}",
                response=response,
                error=e,
            ) from e
        if not isinstance(payload, dict):
            raise HttpResponseError(
                message=f"Expected a JSON object from {method} {url}",
                response=response,
            )
        return payload

    def create(self, request: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        payload = self._send("POST", self._hook_url(), request)
        identity = payload.get("lifecycleHookId")
        if not identity:
            raise HttpResponseError(message="Create response carried no lifecycleHookId")
        logger.debug("Lifecycle hook created", extra={"identity": identity})
        return str(identity), payload

    def describe(self, identity: str) -> dict[str, Any]:
        return self._send("GET", self._hook_url(identity))

    def update(self, identity: str, request: dict[str, Any]) -> dict[str, Any]:
        return self._send("PATCH", self._hook_url(identity), request)

    def delete(self, identity: str) -> dict[str, Any]:
        return self._send("DELETE", self._hook_url(identity))
