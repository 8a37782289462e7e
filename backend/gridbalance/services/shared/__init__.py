"""Shared building blocks for services that talk to external APIs."""

from gridbalance.services.shared.http_client import AsyncHTTPClient, HTTPClientError

__all__ = ["AsyncHTTPClient", "HTTPClientError"]
