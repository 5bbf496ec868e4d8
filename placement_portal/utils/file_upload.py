"""
Resume upload handling - validate, extract text, store.

Supported formats:
- PDF (.pdf) using PyPDF2
- Word (.docx) using python-docx
- Plain Text (.txt)

Size limit comes from `max_upload_mb`. Files are stored under `upload_dir`.
"""

import io
import logging
import os
import uuid
from dataclasses import dataclass
from docx import Document
from fastapi import UploadFile, HTTPException
from PyPDF2 import PdfReader

from placement_portal.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'.pdf', '.docx', '.txt'}


@dataclass
class ResumeFile:
    filename: str
    extension: str
    content: bytes
    text: str


def get_file_extension(filename: str) -> str:
    """Get lowercase file extension."""
    if '.' not in filename:
        return ''
    return '.' + filename.rsplit('.', 1)[1].lower()


async def read_resume(file: UploadFile) -> ResumeFile:
    """
    Validate an uploaded resume and extract its text.

    Raises:
        HTTPException 400 for a missing name, unsupported type or no text,
        413 when the file exceeds the size limit.
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    ext = get_file_extension(file.filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type '{ext}'. Allowed: PDF, DOCX, TXT"
        )

    content = await file.read()

    if len(content) > settings.max_upload_mb * 1024 * 1024:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {settings.max_upload_mb}MB"
        )

    if ext == '.pdf':
        text = extract_from_pdf(content)
    elif ext == '.docx':
        text = extract_from_docx(content)
    else:
        text = extract_from_txt(content)

    if not text.strip():
        raise HTTPException(
            status_code=400,
            detail="Could not extract text from file. File may be empty or corrupted."
        )

    return ResumeFile(filename=file.filename, extension=ext, content=content, text=text)


def save_resume(resume: ResumeFile, student_id: int) -> str:
    """Write the file under upload_dir/resumes and return its path."""
    directory = os.path.join(settings.upload_dir, "resumes")
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, f"student_{student_id}_{uuid.uuid4().hex[:8]}{resume.extension}")
    with open(path, "wb") as fh:
        fh.write(resume.content)
    logger.info(f"Stored resume for student {student_id} at {path}")
    return path


def remove_file(path: str) -> None:
    if path and os.path.exists(path):
        os.remove(path)


def extract_from_pdf(content: bytes) -> str:
    """Extract text from PDF bytes."""
    try:
        reader = PdfReader(io.BytesIO(content))
        return '\n'.join(page.extract_text() or '' for page in reader.pages)
    except Exception as e:
        logger.warning(f"Unreadable PDF upload: {e}")
        raise HTTPException(status_code=400, detail=f"Error reading PDF: {str(e)}")


def extract_from_docx(content: bytes) -> str:
    """Paragraphs plus table cells, one table row per line."""
    try:
        doc = Document(io.BytesIO(content))
        parts = [para.text for para in doc.paragraphs if para.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    parts.append(' | '.join(cells))
        return '\n'.join(parts)
    except Exception as e:
        logger.warning(f"Unreadable DOCX upload: {e}")
        raise HTTPException(status_code=400, detail=f"Error reading DOCX: {str(e)}")


def extract_from_txt(content: bytes) -> str:
    for encoding in ['utf-8', 'cp1252']:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise HTTPException(status_code=400, detail="Could not decode text file")
