"""
Text extraction for scanned invoices and quotes.

Tesseract is driven through pytesseract; PDF pages are rasterized with
PyMuPDF first. Engine failures are retried, content failures are not.
"""
import io
import logging
import os
import time

import fitz  # PyMuPDF
import pytesseract
from django.conf import settings
from PIL import Image

from campus.core.exceptions import OcrError

logger = logging.getLogger(__name__)

SUPPORTED_ENGINES = ('tesseract',)
PDF_EXTENSIONS = ('.pdf',)


def _configure_tesseract():
    if settings.TESSERACT_CMD:
        pytesseract.pytesseract.tesseract_cmd = settings.TESSERACT_CMD


def _ocr_image(image):
    return pytesseract.image_to_string(image, lang=settings.OCR_LANGUAGE) or ''


def pdf_to_images(path):
    """Rasterize the first pages of a PDF, raising OCR_002 when it cannot be read"""
    try:
        document = fitz.open(path)
    except (RuntimeError, ValueError) as e:
        raise OcrError(f'OCR_002: Impossible de convertir le PDF ({e})', code='OCR_002')

    images = []
    try:
        for index in range(min(len(document), settings.OCR_MAX_PAGES)):
            pixmap = document.load_page(index).get_pixmap(dpi=settings.OCR_PDF_DPI)
            images.append(Image.open(io.BytesIO(pixmap.tobytes('png'))))
    except (RuntimeError, ValueError) as e:
        raise OcrError(f'OCR_002: Impossible de convertir le PDF ({e})', code='OCR_002')
    finally:
        document.close()

    if not images:
        raise OcrError('OCR_002: Impossible de convertir le PDF (aucune page)', code='OCR_002')
    return images


def extract_text_with_tesseract(path):
    _configure_tesseract()
    if os.path.splitext(path)[1].lower() in PDF_EXTENSIONS:
        pages = [_ocr_image(image) for image in pdf_to_images(path)]
        return '\n'.join(text for text in pages if text).strip()
    with Image.open(path) as image:
        return _ocr_image(image).strip()


def extract_text(path, engine=None):
    engine = engine or settings.OCR_ENGINE
    if engine not in SUPPORTED_ENGINES:
        raise OcrError(f"OCR_004: Moteur OCR non supporté '{engine}'", code='OCR_004')
    return extract_text_with_tesseract(path)


def read_document(path, engine=None):
    """
    Return the text of a document, retrying engine failures.

    Raises:
        OcrError: OCR_001 when the document yields no text, OCR_002 when a
            PDF cannot be rasterized, OCR_004 for an unknown engine and
            OCR_005 once ``OCR_MAX_RETRIES`` attempts have failed.
    """
    max_retries = max(settings.OCR_MAX_RETRIES, 1)
    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            text = extract_text(path, engine=engine)
        except OcrError:
            raise
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError, RuntimeError) as e:
            last_error = e
            logger.warning(f"OCR attempt {attempt} failed on {os.path.basename(path)}: {e}")
            if attempt < max_retries and settings.OCR_RETRY_DELAY:
                time.sleep(settings.OCR_RETRY_DELAY)
            continue

        if not text.strip():
            raise OcrError('OCR_001: Document illisible ou qualité insuffisante', code='OCR_001')
        return text

    logger.error(f"OCR gave up after {max_retries} attempts: {last_error}")
    raise OcrError(
        f'OCR_005: Service OCR indisponible après {max_retries} tentatives', code='OCR_005'
    )
