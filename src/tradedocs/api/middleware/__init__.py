"""API middleware package."""

from tradedocs.api.middleware.request_id import RequestIdMiddleware

__all__ = ["RequestIdMiddleware"]
