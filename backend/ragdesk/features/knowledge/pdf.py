import logging
import os
import tempfile

from langchain_community.document_loaders import PyPDFLoader

from ragdesk.core.exceptions import DocumentParseError

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"
PAGE_SEPARATOR = "\n\n"


def looks_like_pdf(filename: str | None, content_type: str | None) -> bool:
    """Accept by MIME type, falling back to the file extension."""
    if content_type and "pdf" in content_type.lower():
        return True
    return bool(filename) and filename.lower().endswith(".pdf")


def extract_text_from_pdf(file_bytes: bytes, filename: str) -> str:
    """
    Extract the text of every page using PyPDFLoader.
    Use a temp file since the loader requires a file path.

    Raises:
        DocumentParseError: If the bytes are not a readable PDF.
    """
    if not file_bytes.startswith(PDF_MAGIC):
        raise DocumentParseError("Could not parse PDF", f"{filename}: missing %PDF- header")

    with tempfile.NamedTemporaryFile(delete=False, suffix=".pdf") as temp_file:
        temp_file.write(file_bytes)
        temp_path = temp_file.name

    try:
        pages = PyPDFLoader(temp_path).load()
    except Exception as e:
        raise DocumentParseError("Could not parse PDF", f"{filename}: {e}") from e
    finally:
        if os.path.exists(temp_path):
            os.remove(temp_path)

    logger.info("Extracted %d pages from %s", len(pages), filename)
    return PAGE_SEPARATOR.join(page.page_content for page in pages).strip()
