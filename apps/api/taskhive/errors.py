from __future__ import annotations

from fastapi import status


class DomainError(Exception):
  status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

  def __init__(self, message: str) -> None:
    super().__init__(message)
    self.message = message


class NotFoundError(DomainError):
  status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(DomainError):
  status_code = status.HTTP_403_FORBIDDEN


class ValidationError(DomainError):
  status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(DomainError):
  status_code = status.HTTP_409_CONFLICT
