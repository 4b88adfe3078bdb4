from .base import APIError, APIResponse, BaseAPIClient, HTTPMethod, TransportError

__all__ = ["APIError", "APIResponse", "BaseAPIClient", "HTTPMethod", "TransportError"]
