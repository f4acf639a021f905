"""
Document parsing and structure validation endpoints.

POST /upload              - parse an uploaded PDF/DOCX/DOC/TXT into structured data.
POST /parse-text          - same extraction for text pasted into the request body.
GET  /supported-formats   - accepted extensions and size limit.
POST /validate-structure  - section presence scoring for structured data and/or raw text.
"""
from __future__ import annotations

import dataclasses
import logging
import os
import uuid
from pathlib import Path

import aiofiles
from fastapi import APIRouter, File, HTTPException, UploadFile, status

from prd_validator.config import settings
from prd_validator.models.schemas import (
    ParsedDocumentResponse,
    ParseTextRequest,
    StructuredDataSchema,
    SupportedFormatsResponse,
    ValidateStructureRequest,
    ValidationResponse,
)
from prd_validator.services.document_parser import (
    DocumentParser,
    ParsedContent,
    describe_text,
    detect_format,
)
from prd_validator.services.prd_extractor import parse
from prd_validator.services.structure_validator import validate_structure

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _safe_remove(path: str) -> None:
    try:
        if path and os.path.exists(path):
            os.remove(path)
    except OSError as exc:
        logger.warning("Could not remove file %r: %s", path, exc)


async def parse_upload(file: UploadFile) -> ParsedContent:
    """
    Stream an upload to a temporary file, parse it, and delete the file.

    Raises HTTP 400 without a filename, 413 above MAX_FILE_SIZE, 422 when the
    file holds no extractable text. Unsupported extensions and unreadable
    files propagate as domain errors.
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Upload must include a filename.",
        )

    detect_format(file.filename)
    file_ext = Path(file.filename).suffix.lower()

    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    stored_name = f"{uuid.uuid4().hex}{file_ext}"
    file_path = os.path.join(settings.UPLOAD_DIR, stored_name)
    file_size = 0

    try:
        # Stream to disk while enforcing the size limit
        async with aiofiles.open(file_path, "wb") as out:
            while True:
                chunk = await file.read(1024 * 1024)   # 1 MB slices
                if not chunk:
                    break
                file_size += len(chunk)
                if file_size > settings.MAX_FILE_SIZE:
                    raise HTTPException(
                        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                        detail=(
                            f"File exceeds the {settings.MAX_FILE_SIZE // (1024 * 1024)} MB "
                            "size limit."
                        ),
                    )
                await out.write(chunk)

        logger.info("Saved %r → %s (%s bytes)", file.filename, file_path, f"{file_size:,}")

        parsed = await DocumentParser().parse_document(file_path, file.filename)
    finally:
        _safe_remove(file_path)

    if not parsed.text.strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Document contains no extractable text.",
        )
    return parsed


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/upload", response_model=ParsedDocumentResponse)
async def upload_document(file: UploadFile = File(...)) -> ParsedDocumentResponse:
    """
    Upload a PRD and return its text, metadata and structured data.

    - Max file size: 50 MB (configurable via MAX_FILE_SIZE)
    - The file is removed from disk once parsed; nothing is stored
    """
    parsed = await parse_upload(file)
    structured = parse(parsed.text)

    return ParsedDocumentResponse(
        title=parsed.metadata.get("title") or file.filename,
        content=parsed.text,
        metadata=parsed.metadata,
        structured_data=StructuredDataSchema(**structured.to_dict()),
    )


@router.post("/parse-text", response_model=ParsedDocumentResponse)
async def parse_text(body: ParseTextRequest) -> ParsedDocumentResponse:
    """Extract structured data from PRD text supplied directly."""
    structured = parse(body.content)
    metadata = {"format": "text", **describe_text(body.content)}

    return ParsedDocumentResponse(
        title=body.title or "Untitled PRD",
        content=body.content,
        metadata=metadata,
        structured_data=StructuredDataSchema(**structured.to_dict()),
    )


@router.get("/supported-formats", response_model=SupportedFormatsResponse)
async def supported_formats() -> SupportedFormatsResponse:
    return SupportedFormatsResponse(
        formats=settings.SUPPORTED_FILE_TYPES,
        max_file_size_mb=settings.MAX_FILE_SIZE // (1024 * 1024),
    )


@router.post("/validate-structure", response_model=ValidationResponse)
async def validate_document_structure(body: ValidateStructureRequest) -> ValidationResponse:
    """
    Score section presence and completeness.

    Requires ``structured_data`` or ``content``; neither gives HTTP 400.
    """
    structured = body.structured_data.as_dict() if body.structured_data is not None else None
    result = validate_structure(structured, body.content)
    return ValidationResponse(**dataclasses.asdict(result))
