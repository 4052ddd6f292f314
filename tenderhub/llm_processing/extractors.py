"""
Plain-text extraction from uploaded tender documents (PDF, DOCX, TXT).
"""
import io
import logging
import os
import zipfile

from django.conf import settings
from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from tenderhub.core.exceptions import WorkflowError

logger = logging.getLogger(__name__)

PDF_TYPES = {'application/pdf'}
DOCX_TYPES = {'application/vnd.openxmlformats-officedocument.wordprocessingml.document'}
TEXT_TYPES = {'text/plain'}


class UnsupportedDocument(WorkflowError):
    pass


def document_kind(name, content_type=''):
    extension = os.path.splitext(name or '')[1].lower()
    content_type = (content_type or '').split(';')[0].strip().lower()
    if content_type in PDF_TYPES or extension == '.pdf':
        return 'pdf'
    if content_type in DOCX_TYPES or extension == '.docx':
        return 'docx'
    if content_type in TEXT_TYPES or extension == '.txt':
        return 'txt'
    return None


def _pdf_text(data):
    reader = PdfReader(io.BytesIO(data))
    return '\n\n'.join((page.extract_text() or '') for page in reader.pages)


def _docx_text(data):
    document = Document(io.BytesIO(data))
    return '\n'.join(paragraph.text for paragraph in document.paragraphs if paragraph.text.strip())


def extract_text(uploaded_file):
    """Return the text of an uploaded file; raises UnsupportedDocument otherwise"""
    max_size = getattr(settings, 'MAX_UPLOAD_SIZE', 10 * 1024 * 1024)
    if uploaded_file.size and uploaded_file.size > max_size:
        raise UnsupportedDocument(f'File exceeds the maximum upload size of {max_size} bytes')

    kind = document_kind(uploaded_file.name, getattr(uploaded_file, 'content_type', ''))
    if kind is None:
        raise UnsupportedDocument('Unsupported file format. Upload a PDF, DOCX or TXT document.')

    data = uploaded_file.read()
    try:
        if kind == 'pdf':
            text = _pdf_text(data)
        elif kind == 'docx':
            text = _docx_text(data)
        else:
            text = data.decode('utf-8', errors='replace')
    except (PdfReadError, PackageNotFoundError, zipfile.BadZipFile, ValueError, KeyError, OSError) as e:
        logger.warning(f"Could not read {uploaded_file.name}: {str(e)}")
        raise UnsupportedDocument(f'Could not read {kind.upper()} document')

    logger.debug(f"Extracted {len(text)} characters from {uploaded_file.name}")
    return text
