"""
OOXML Repair Unit
=================
Word splits typed text into runs whenever formatting, spell-check state or
revision marks change, so a placeholder like ``{{nama_lengkap}}`` often ends
up spread across several ``<w:t>`` nodes. This module rewrites the text
parts of a DOCX package so that every placeholder sits inside a single text
node, and fixes two common authoring mistakes:

- ``{{name}``  becomes ``{{name}}``
- ``{%name}``  becomes ``{{%name}}`` (image tag in double-brace form)

A package with a part that is not well-formed XML is rejected with a
TemplateError naming the part. When no part needs repair the input bytes
are returned unchanged, so repairing a well-formed template is a no-op.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from docx.oxml.ns import qn
from lxml import etree

from app.core.logging_config import logger
from app.services.template.docx_package import open_docx, part_name, save_docx, story_parts


W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
W_P = qn("w:p")
W_T = qn("w:t")
XML_SPACE = qn("xml:space")

REPAIRABLE_PARTS: Tuple[str, ...] = (
    "word/document.xml",
    "word/header1.xml",
    "word/header2.xml",
    "word/header3.xml",
    "word/footer1.xml",
    "word/footer2.xml",
    "word/footer3.xml",
)

# A placeholder candidate in paragraph text: {{x}}, {{x}, {%x}, {{%x}}
PLACEHOLDER_SPAN = re.compile(r"\{[{%][^{}]*\}\}?")
# Placeholders the renderer accepts
RENDERABLE_PLACEHOLDER = re.compile(r"\{\{%?[A-Za-z0-9_]+\}\}")

SINGLE_CLOSE_TYPO = re.compile(r"\{\{([A-Za-z0-9_]+)\}(?!\})")
SINGLE_BRACE_IMAGE = re.compile(r"(?<!\{)\{%([A-Za-z0-9_]+)\}(?!\})")


@dataclass
class PartRepair:
    """Outcome for one package part"""
    part: str
    placeholders_before: int
    placeholders_after: int
    changed: bool


@dataclass
class RepairResult:
    content: bytes
    parts: List[PartRepair] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return any(p.changed for p in self.parts)


def paragraph_text_nodes(paragraph: etree._Element) -> List[etree._Element]:
    """Text nodes owned by this paragraph, excluding nested (text box) paragraphs"""
    nodes = []
    for t in paragraph.iter(W_T):
        owner = next(t.iterancestors(W_P), None)
        if owner is paragraph:
            nodes.append(t)
    return nodes


def consolidate_placeholders(nodes: Sequence[etree._Element]) -> bool:
    """
    Move every placeholder that spans several text nodes into the node
    where it starts. Returns True if any node text changed.
    """
    if len(nodes) < 2:
        return False

    texts = [t.text or "" for t in nodes]
    full = "".join(texts)
    if "{" not in full:
        return False

    owner: List[int] = []
    for index, text in enumerate(texts):
        owner.extend([index] * len(text))

    moved = False
    for match in PLACEHOLDER_SPAN.finditer(full):
        start, end = match.span()
        first = owner[start]
        if owner[end - 1] == first:
            continue
        for position in range(start, end):
            owner[position] = first
        moved = True

    if not moved:
        return False

    rebuilt = [[] for _ in nodes]
    for char, index in zip(full, owner):
        rebuilt[index].append(char)

    changed = False
    for t, chars, original in zip(nodes, rebuilt, texts):
        new_text = "".join(chars)
        if new_text != original:
            set_node_text(t, new_text)
            changed = True
    return changed


def fix_tag_typos(text: str) -> str:
    """Apply the one-shot authoring fixes to a single text node value"""
    text = SINGLE_CLOSE_TYPO.sub(r"{{\1}}", text)
    return SINGLE_BRACE_IMAGE.sub(r"{{%\1}}", text)


def set_node_text(t: etree._Element, text: str) -> None:
    t.text = text
    if text != text.strip():
        t.set(XML_SPACE, "preserve")


def count_renderable(root: etree._Element) -> int:
    return sum(len(RENDERABLE_PLACEHOLDER.findall(t.text or "")) for t in root.iter(W_T))


def repair_tree(root: etree._Element) -> bool:
    """Repair a parsed part in place. Returns True if anything changed."""
    changed = False
    for paragraph in root.iter(W_P):
        nodes = paragraph_text_nodes(paragraph)
        if consolidate_placeholders(nodes):
            changed = True
        for t in nodes:
            original = t.text or ""
            fixed = fix_tag_typos(original)
            if fixed != original:
                set_node_text(t, fixed)
                changed = True
    return changed




def repair_part(name: str, root: etree._Element) -> PartRepair:
    """Repair one parsed part in place and report its placeholder counts"""
    before = count_renderable(root)
    changed = repair_tree(root)
    after = count_renderable(root) if changed else before
    return PartRepair(part=name, placeholders_before=before, placeholders_after=after, changed=changed)


def repair_docx(content: bytes, parts: Optional[Sequence[str]] = None) -> RepairResult:
    """
    Repair a DOCX package.

    Args:
        content: DOCX bytes
        parts: Part names to repair (defaults to body, headers and footers)

    Returns:
        RepairResult with the repaired package; content is the input bytes
        unchanged when no part needed repair.

    Raises:
        TemplateError: content is not a DOCX package or a part is not well-formed XML
    """
    targets = set(parts or REPAIRABLE_PARTS)
    result = RepairResult(content=content)
    document = open_docx(content)

    for part in story_parts(document):
        name = part_name(part.partname)
        if name not in targets:
            continue
        report = repair_part(name, part.element)
        result.parts.append(report)
        logger.log_trace(
            "OoxmlRepair",
            f"{name}: {report.placeholders_before} -> {report.placeholders_after} placeholders",
            part=name,
            placeholders_before=report.placeholders_before,
            placeholders_after=report.placeholders_after,
        )

    if not result.changed:
        return result

    result.content = save_docx(document)
    logger.info(f"[OoxmlRepair] Repaired parts: {', '.join(p.part for p in result.parts if p.changed)}")
    return result
