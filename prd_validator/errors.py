"""
Domain exceptions raised by the PRD Validator services.

Routers never let these escape as raw tracebacks: ``main.py`` registers a
handler that turns every ``PrdValidatorError`` into a structured JSON body.
"""
from __future__ import annotations

from fastapi import status


class PrdValidatorError(Exception):
    """Base class for all domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    kind: str = "prd_validator_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnsupportedFormatError(PrdValidatorError):
    """The uploaded file's extension is not one the format detector handles."""

    kind = "unsupported_format"


class MissingInputError(PrdValidatorError):
    """Structure validation was requested with neither structured data nor content."""

    kind = "missing_input"


class DocumentParseError(PrdValidatorError):
    """The file has a supported extension but could not be decoded."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    kind = "document_parse_error"


class MalformedUpstreamResponseError(PrdValidatorError):
    """The AI collaborator returned output that could not be parsed into a score."""

    status_code = status.HTTP_502_BAD_GATEWAY
    kind = "malformed_upstream_response"
