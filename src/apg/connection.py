"""Registry client construction from RegistrySettings."""

from __future__ import annotations

import collections
import logging
from typing import Any

import grpc
from google.api_core.client_options import ClientOptions
from google.cloud import apigee_registry_v1
from google.cloud.apigee_registry_v1.services.registry.transports import (
    RegistryGrpcTransport,
)
from google.oauth2 import credentials as oauth2_credentials

from apg.config import RegistrySettings

__all__ = ["BearerTokenInterceptor", "build_client"]

logger = logging.getLogger(__name__)


class _ClientCallDetails(
    collections.namedtuple(
        "_ClientCallDetails",
        (
            "method",
            "timeout",
            "metadata",
            "credentials",
            "wait_for_ready",
            "compression",
        ),
    ),
    grpc.ClientCallDetails,
):
    pass


class BearerTokenInterceptor(
    grpc.UnaryUnaryClientInterceptor, grpc.UnaryStreamClientInterceptor
):
    """Adds ``authorization: Bearer <token>`` to every call on a plaintext channel."""

    def __init__(self, token: str) -> None:
        self._metadata = ("authorization", f"Bearer {token}")

    def _details(self, client_call_details: Any) -> _ClientCallDetails:
        metadata = list(client_call_details.metadata or [])
        metadata.append(self._metadata)
        return _ClientCallDetails(
            client_call_details.method,
            client_call_details.timeout,
            metadata,
            client_call_details.credentials,
            getattr(client_call_details, "wait_for_ready", None),
            getattr(client_call_details, "compression", None),
        )

    def intercept_unary_unary(
        self, continuation: Any, client_call_details: Any, request: Any
    ) -> Any:
        return continuation(self._details(client_call_details), request)

    def intercept_unary_stream(
        self, continuation: Any, client_call_details: Any, request: Any
    ) -> Any:
        return continuation(self._details(client_call_details), request)


def build_client(settings: RegistrySettings) -> apigee_registry_v1.RegistryClient:
    """Create a RegistryClient for the configured address.

    Insecure settings use a plaintext gRPC channel; otherwise TLS with either
    the configured bearer token, the API key, or application default credentials.

    Raises:
        ConfigError: If no address is configured.
    """
    settings.validate_connection()

    if settings.insecure:
        channel = grpc.insecure_channel(settings.address)
        if settings.token:
            channel = grpc.intercept_channel(
                channel, BearerTokenInterceptor(settings.token)
            )
        transport = RegistryGrpcTransport(host=settings.address, channel=channel)
        logger.debug("Connecting to %s without TLS", settings.address)
        return apigee_registry_v1.RegistryClient(transport=transport)

    options = ClientOptions(
        api_endpoint=settings.address, api_key=settings.api_key or None
    )
    creds = None
    if settings.token and not settings.api_key:
        creds = oauth2_credentials.Credentials(settings.token)
    logger.debug("Connecting to %s", settings.address)
    return apigee_registry_v1.RegistryClient(credentials=creds, client_options=options)
