"""
DOCX Template Renderer
======================
Fills a DOCX template with letter data.

Placeholder syntax:
- ``{{field}}``  replaced with the field value as text (missing -> empty)
- ``{{%tag}}``   replaced with an inline picture from the image resolver

Values containing newlines become line breaks. Placeholders split across runs
are consolidated before substitution, so the renderer also accepts templates
that were not repaired first. Every malformed placeholder found in any part
is reported together in a single TemplateError.
"""

import io
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from docx.image.exceptions import UnrecognizedImageError
from docx.oxml import OxmlElement
from docx.parts.story import StoryPart
from docx.shared import Emu
from lxml import etree

from app.core.exceptions import TemplateError
from app.core.logging_config import logger
from app.services.template.docx_package import open_docx, part_name, save_docx, story_parts
from app.services.template.images import (
    Base64ImageResolver,
    EMPTY_IMAGE_SIZE,
    EMU_PER_PIXEL,
    ImageResolver,
    TRANSPARENT_PNG,
)
from app.services.template.ooxml_repair import (
    W_P,
    XML_SPACE,
    consolidate_placeholders,
    paragraph_text_nodes,
)


TAG_NAME = re.compile(r"^[A-Za-z0-9_]+$")
OPEN = "{{"
CLOSE = "}}"


def tokenize(text: str) -> Tuple[List[Tuple[str, str]], List[Dict[str, str]]]:
    """
    Split node text into ("text", s) / ("field", name) / ("image", name) segments.

    Returns the segments and a list of problems found in this text.
    """
    segments: List[Tuple[str, str]] = []
    errors: List[Dict[str, str]] = []
    position = 0

    while position < len(text):
        start = text.find(OPEN, position)
        stray = text.find(CLOSE, position)
        if stray != -1 and (start == -1 or stray < start):
            errors.append({"tag": CLOSE, "reason": "closing delimiter without opening delimiter"})
            segments.append(("text", text[position:stray + len(CLOSE)]))
            position = stray + len(CLOSE)
            continue
        if start == -1:
            segments.append(("text", text[position:]))
            break

        if start > position:
            segments.append(("text", text[position:start]))

        end = text.find(CLOSE, start + len(OPEN))
        nested = text.find(OPEN, start + len(OPEN))
        if end == -1 or (nested != -1 and nested < end):
            raw = text[start:nested if nested != -1 and (end == -1 or nested < end) else len(text)]
            errors.append({"tag": raw, "reason": "unclosed tag"})
            segments.append(("text", raw))
            position = start + len(raw)
            continue

        raw = text[start:end + len(CLOSE)]
        inner = text[start + len(OPEN):end]
        kind = "field"
        if inner.startswith("%"):
            kind = "image"
            inner = inner[1:]
        if not inner:
            errors.append({"tag": raw, "reason": "empty tag"})
            segments.append(("text", raw))
        elif not TAG_NAME.match(inner):
            errors.append({"tag": raw, "reason": "invalid tag name"})
            segments.append(("text", raw))
        else:
            segments.append((kind, inner))
        position = end + len(CLOSE)

    return segments, errors


def _text_element(text: str) -> etree._Element:
    t = OxmlElement("w:t")
    t.text = text
    t.set(XML_SPACE, "preserve")
    return t


class TemplateRenderer:
    """
    Render DOCX templates.

    Usage:
        renderer = TemplateRenderer()
        output = renderer.render(template_bytes, {"nama_lengkap": "Budi"}, {"qr_code": qr_b64})
    """

    def __init__(self, image_resolver: Optional[ImageResolver] = None):
        self.image_resolver = image_resolver or Base64ImageResolver()

    def render(
        self,
        template: bytes,
        data: Mapping[str, Any],
        images: Optional[Mapping[str, Any]] = None,
    ) -> bytes:
        """
        Render a template.

        Args:
            template: DOCX bytes
            data: Field name -> value
            images: Image tag -> value for the resolver (overrides data)

        Returns:
            Rendered DOCX bytes

        Raises:
            TemplateError: if the template is not a DOCX package or has malformed tags
        """
        document = open_docx(template)
        errors: List[Dict[str, Any]] = []
        missing: set = set()
        image_values = dict(images or {})

        for part in story_parts(document):
            errors.extend(self._render_part(part, data, image_values, missing))

        if errors:
            logger.warning(f"[TemplateRenderer] {len(errors)} template error(s)")
            raise TemplateError(errors)

        if missing:
            logger.warning(f"[TemplateRenderer] Missing values rendered empty: {', '.join(sorted(missing))}")

        return save_docx(document)

    def _render_part(
        self,
        part: StoryPart,
        data: Mapping[str, Any],
        images: Mapping[str, Any],
        missing: set,
    ) -> List[Dict[str, Any]]:
        name = part_name(part.partname)
        errors: List[Dict[str, Any]] = []

        for paragraph in list(part.element.iter(W_P)):
            nodes = paragraph_text_nodes(paragraph)
            consolidate_placeholders(nodes)

            for t in nodes:
                text = t.text or ""
                if "{" not in text and "}" not in text:
                    continue
                segments, node_errors = tokenize(text)
                for error in node_errors:
                    errors.append({"part": name, **error})
                if node_errors or all(kind == "text" for kind, _ in segments):
                    continue

                # Text elements, or the tag name where a picture goes
                pieces: List[Any] = []
                buffer = ""
                for kind, value in segments:
                    if kind == "text":
                        buffer += value
                    elif kind == "field":
                        buffer += self._field_value(value, data, missing)
                    else:
                        pieces.extend(self._text_with_breaks(buffer))
                        buffer = ""
                        pieces.append(value)
                pieces.extend(self._text_with_breaks(buffer))

                run = t.getparent()
                index = run.index(t)
                run.remove(t)
                for offset, piece in enumerate(pieces):
                    # Drawings are created once placed so each gets a fresh docPr id
                    if isinstance(piece, str):
                        tag_value = images[piece] if piece in images else data.get(piece)
                        piece = self._drawing(part, piece, tag_value)
                    run.insert(index + offset, piece)

        return errors

    def _drawing(self, part: StoryPart, tag: str, value: Any) -> etree._Element:
        """A w:drawing holding the resolved image as an inline picture of this part"""
        data = self.image_resolver.get_image(tag, value)
        width, height = self.image_resolver.get_size(tag, value)
        try:
            inline = part.new_pic_inline(
                io.BytesIO(data), Emu(width * EMU_PER_PIXEL), Emu(height * EMU_PER_PIXEL)
            )
        except UnrecognizedImageError:
            logger.warning(f"[TemplateRenderer] Unrecognized image data for '{tag}', using blank image")
            width, height = EMPTY_IMAGE_SIZE
            inline = part.new_pic_inline(
                io.BytesIO(TRANSPARENT_PNG), Emu(width * EMU_PER_PIXEL), Emu(height * EMU_PER_PIXEL)
            )

        drawing = OxmlElement("w:drawing")
        drawing.append(inline)
        return drawing

    @staticmethod
    def _field_value(name: str, data: Mapping[str, Any], missing: set) -> str:
        value = data.get(name)
        if value is None:
            missing.add(name)
            return ""
        return str(value)

    @staticmethod
    def _text_with_breaks(text: str) -> List[etree._Element]:
        if not text:
            return []
        elements: List[etree._Element] = []
        for index, line in enumerate(text.split("\n")):
            if index:
                elements.append(OxmlElement("w:br"))
            if line:
                elements.append(_text_element(line))
        return elements


def inspect_template(template: bytes) -> Dict[str, Dict[str, Any]]:
    """
    Placeholders and tag problems per part, without rendering.

    Returns:
        {part: {"fields": [...], "images": [...], "errors": [...]}}

    Raises:
        TemplateError: if the template is not a DOCX package or a part is not well-formed XML
    """
    document = open_docx(template)

    report: Dict[str, Dict[str, Any]] = {}
    for part in story_parts(document):
        entry: Dict[str, Any] = {"fields": [], "images": [], "errors": []}
        for paragraph in part.element.iter(W_P):
            nodes = paragraph_text_nodes(paragraph)
            consolidate_placeholders(nodes)
            for t in nodes:
                segments, errors = tokenize(t.text or "")
                entry["errors"].extend(errors)
                for kind, value in segments:
                    if kind == "field":
                        entry["fields"].append(value)
                    elif kind == "image":
                        entry["images"].append(value)
        report[part_name(part.partname)] = entry

    return report


def render_template(template: bytes, data: Mapping[str, Any], images: Optional[Mapping[str, Any]] = None) -> bytes:
    """Render with the default base64 image resolver"""
    return TemplateRenderer().render(template, data, images)
