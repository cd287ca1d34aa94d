"""
Test support utilities for callguard tests.

Helpers that are not fixtures but are shared across test modules.
"""

from __future__ import annotations


class HttpError(Exception):
    """Exception shaped like an HTTP client error with a status code."""

    def __init__(self, status: int, message: str = "HTTP error"):
        super().__init__(message)
        self.status = status


class FakeResponse:
    def __init__(self, status_code: int):
        self.status_code = status_code


class ResponseError(Exception):
    """Exception carrying ``response.status_code`` like httpx/requests errors."""

    def __init__(self, status_code: int, message: str = "response error"):
        super().__init__(message)
        self.response = FakeResponse(status_code)


class FixedJitter:
    """Jitter source that always returns the same point in the range."""

    def __init__(self, position: float = 0.5):
        self.position = position
        self.calls: list[tuple[float, float]] = []

    def uniform(self, a: float, b: float) -> float:
        self.calls.append((a, b))
        return a + (b - a) * self.position
