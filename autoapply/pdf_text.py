"""Plain text from resume PDFs downloaded from HeadHunter."""
from __future__ import annotations

import io
import re

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from autoapply.log import get_logger

log = get_logger(__name__)

MAX_RESUME_CHARS = 6000


def _fix_spacing(text: str) -> str:
    """Re-insert spaces when PDF extraction merges words together.

    Detects the problem by checking if the space-to-character ratio is
    abnormally low, then applies heuristic space insertion.
    """
    if not text or len(text) < 50:
        return text
    space_ratio = text.count(" ") / len(text)
    if space_ratio > 0.08:
        return text

    log.debug("Low space ratio (%.2f%%), applying spacing fix", space_ratio * 100)
    fixed = re.sub(r"([a-zа-яё])([A-ZА-ЯЁ])", r"\1 \2", text)
    fixed = re.sub(r"([a-zA-Zа-яА-ЯёЁ])(\d)", r"\1 \2", fixed)
    fixed = re.sub(r"(\d)([a-zA-Zа-яА-ЯёЁ])", r"\1 \2", fixed)
    fixed = re.sub(r"([.!?,;:])([A-Za-zА-Яа-яЁё])", r"\1 \2", fixed)
    return fixed


def extract_pdf_text(data: bytes, *, limit: int = MAX_RESUME_CHARS) -> str:
    """Return the text of a PDF, truncated to *limit* characters.

    Raises ValueError when the bytes are not a readable PDF.
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [_fix_spacing(page.extract_text() or "") for page in reader.pages]
    except (PdfReadError, OSError, ValueError) as exc:
        raise ValueError(f"Unreadable PDF: {exc}") from exc
    text = re.sub(r"[ \t]+", " ", "\n".join(pages)).strip()
    return text[:limit]
