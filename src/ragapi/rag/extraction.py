"""Text extraction from uploaded files."""

import asyncio
import logging
from pathlib import Path

from .base import BaseTextExtractor
from .exceptions import ExtractionError

logger = logging.getLogger(__name__)

FILE_TYPES = {
    "pdf": "pdf",
    "docx": "docx",
    "doc": "docx",
    "jpg": "image",
    "jpeg": "image",
    "png": "image",
    "ppt": "ppt",
    "pptx": "ppt",
    "txt": "text",
}


def detect_file_type(filename: str) -> str:
    """Infer the file type from the extension, defaulting to text."""
    extension = Path(filename).suffix.lower().lstrip(".")
    return FILE_TYPES.get(extension, "text")


def _read_pdf(file_path: str) -> str:
    import pypdf

    reader = pypdf.PdfReader(file_path)
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def _read_docx(file_path: str) -> str:
    from docx import Document as DocxDocument

    doc = DocxDocument(file_path)
    return "\n\n".join(para.text for para in doc.paragraphs)


def _read_text(file_path: str) -> str:
    return Path(file_path).read_text(encoding="utf-8", errors="replace")


class FileTextExtractor(BaseTextExtractor):
    """Extracts text from PDF, DOCX and plain-text files.

    Images and slide decks are not parsed; a placeholder naming the file
    is returned instead. Extraction never raises.
    """

    READERS = {
        "pdf": _read_pdf,
        "docx": _read_docx,
        "text": _read_text,
    }

    PLACEHOLDERS = {
        "image": "[Image: {name}]",
        "ppt": "[PowerPoint: {name}]",
    }

    async def extract(self, file_path: str, file_type: str) -> str:
        name = Path(file_path).name

        if file_type in self.PLACEHOLDERS:
            return self.PLACEHOLDERS[file_type].format(name=name)

        reader = self.READERS.get(file_type)
        if reader is None:
            return f"[Unsupported file type: {file_type}]"

        try:
            return await self._read(reader, file_path)
        except ExtractionError as e:
            logger.error(f"Error extracting text from {file_path}: {e}")
            return f"[Error extracting content from file: {name}]"

    async def _read(self, reader, file_path: str) -> str:
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, reader, file_path)
        except Exception as e:
            raise ExtractionError(str(e)) from e
