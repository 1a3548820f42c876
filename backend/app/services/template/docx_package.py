"""
DOCX package access.

Templates are opened with python-docx; the body, header and footer parts are
then edited as lxml trees through ``part.element`` and written back with
``Document.save``.
"""

import io
import re
import zipfile
from typing import Any, Dict, List

from docx import Document
from docx.document import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from docx.opc.pkgreader import PackageReader
from docx.parts.story import StoryPart
from lxml import etree

from app.core.exceptions import TemplateError


STORY_PART = re.compile(r"^word/(document|header\d+|footer\d+)\.xml$")


def open_docx(content: bytes) -> DocxDocument:
    """
    Load DOCX bytes.

    Raises:
        TemplateError: not a Word package, or a part is not well-formed XML
    """
    try:
        return Document(io.BytesIO(content))
    except etree.XMLSyntaxError:
        raise TemplateError(unparsable_parts(content))
    except (zipfile.BadZipFile, PackageNotFoundError, KeyError, ValueError) as e:
        raise TemplateError([{"part": None, "tag": None, "reason": f"not a DOCX package: {e}"}])


def unparsable_parts(content: bytes) -> List[Dict[str, Any]]:
    """Name every XML part that lxml rejects"""
    errors: List[Dict[str, Any]] = []
    try:
        reader = PackageReader.from_file(io.BytesIO(content))
    except etree.XMLSyntaxError as e:
        return [{"part": None, "tag": None, "reason": f"invalid XML: {e}"}]

    for partname, _, _, blob in reader.iter_sparts():
        if not partname.endswith(".xml"):
            continue
        try:
            etree.fromstring(blob)
        except etree.XMLSyntaxError as e:
            errors.append({"part": part_name(partname), "tag": None, "reason": f"invalid XML: {e}"})

    return errors or [{"part": None, "tag": None, "reason": "invalid XML"}]


def part_name(partname: str) -> str:
    """'/word/document.xml' -> 'word/document.xml'"""
    return str(partname).lstrip("/")


def story_parts(document: DocxDocument) -> List[StoryPart]:
    """Body, header and footer parts, ordered by part name"""
    parts = [
        part for part in document.part.package.iter_parts()
        if isinstance(part, StoryPart) and STORY_PART.match(part_name(part.partname))
    ]
    return sorted(parts, key=lambda part: str(part.partname))


def save_docx(document: DocxDocument) -> bytes:
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()
