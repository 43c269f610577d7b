from __future__ import annotations

from typing import Any

from fastapi import status


class ApiError(Exception):
  """Request failure rendered as `{"error": message}` with the given status."""

  status_code: int = status.HTTP_400_BAD_REQUEST

  def __init__(self, message: str, *, status_code: int | None = None, headers: dict[str, str] | None = None) -> None:
    super().__init__(message)
    self.message = message
    if status_code is not None:
      self.status_code = status_code
    self.headers = headers


class AuthenticationFailure(ApiError):
  status_code = status.HTTP_401_UNAUTHORIZED

  def __init__(self, message: str = "Unauthorized.") -> None:
    super().__init__(message)


class AuthorizationFailure(ApiError):
  status_code = status.HTTP_401_UNAUTHORIZED

  def __init__(self, message: str = "Unauthorized.") -> None:
    super().__init__(message)


class NotFound(ApiError):
  status_code = status.HTTP_404_NOT_FOUND


class BusinessRuleViolation(ApiError):
  status_code = status.HTTP_400_BAD_REQUEST


class Conflict(ApiError):
  status_code = status.HTTP_409_CONFLICT


class ExternalServiceError(RuntimeError):
  service = "external"

  def __init__(self, *, status_code: int, message: str, details: dict[str, Any] | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code
    self.message = message
    self.details = details or {}


class AuthProviderError(ExternalServiceError):
  service = "auth"


class StorageError(ExternalServiceError):
  service = "storage"


class MailError(ExternalServiceError):
  service = "mail"
