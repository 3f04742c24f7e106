"""Helpers for raw OOXML parts that python-docx and openpyxl do not expose.

Covers PowerPoint slides and notes, Visio pages, embedded Word diagrams and
workbook charts. Parsing is namespace-agnostic: elements are matched on their
local name so the same paragraph walker serves DrawingML and Visio text.
"""

import io
import posixpath
import re
import zipfile
import xml.etree.ElementTree as ET
from typing import Iterator, List, Optional, Tuple, Union

_NATURAL_SPLIT = re.compile(r"(\d+)")
_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def open_container(content: bytes) -> zipfile.ZipFile:
    return zipfile.ZipFile(io.BytesIO(content))


def natural_key(name: str) -> Tuple[Union[int, str], ...]:
    return tuple(
        int(part) if part.isdigit() else part.lower()
        for part in _NATURAL_SPLIT.split(name)
    )


def sorted_members(
    archive: zipfile.ZipFile,
    prefix: str,
    suffix: str = ".xml",
    exclude: Tuple[str, ...] = (),
) -> List[str]:
    names = [
        name
        for name in archive.namelist()
        if name.startswith(prefix)
        and name.endswith(suffix)
        and not any(marker in name for marker in exclude)
    ]
    return sorted(names, key=natural_key)


def has_member(archive: zipfile.ZipFile, name: str) -> bool:
    try:
        archive.getinfo(name)
    except KeyError:
        return False
    return True


def read_text(archive: zipfile.ZipFile, name: str) -> str:
    return archive.read(name).decode("utf-8", errors="replace")


def read_xml(archive: zipfile.ZipFile, name: str) -> ET.Element:
    return ET.fromstring(archive.read(name))


def resolve_target(folder: str, target: str) -> str:
    """Resolve a relationship target; a leading slash anchors it at the package root."""
    if target.startswith("/"):
        return posixpath.normpath(target.lstrip("/"))
    return posixpath.normpath(posixpath.join(folder, target))


def local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def iter_local(element: ET.Element, name: str) -> Iterator[ET.Element]:
    for child in element.iter():
        if local_name(child.tag) == name:
            yield child


def attribute(element: ET.Element, name: str, default: str = "") -> str:
    for key, value in element.attrib.items():
        if local_name(key) == name:
            return value
    return default


def collapse_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def strip_tags(xml_text: str) -> str:
    return collapse_whitespace(_TAG_RE.sub(" ", xml_text))


def extract_paragraphs(root: ET.Element, paragraph_tag: str = "p") -> List[str]:
    texts = (
        collapse_whitespace(_paragraph_text(paragraph, paragraph_tag))
        for paragraph in iter_local(root, paragraph_tag)
    )
    return [text for text in texts if text]


def element_text(element: ET.Element) -> str:
    parts = [element.text or ""] + _paragraph_parts(element, nested_tag=None)
    return collapse_whitespace(" ".join(parts))


def _paragraph_text(paragraph: ET.Element, paragraph_tag: str) -> str:
    return "".join(_paragraph_parts(paragraph, nested_tag=paragraph_tag))


def _paragraph_parts(element: ET.Element, nested_tag: Optional[str]) -> List[str]:
    # Text boxes nest whole paragraphs inside a run; those are emitted on
    # their own, so the walk stops at them.
    parts: List[str] = []
    for child in element:
        name = local_name(child.tag)
        if nested_tag and name == nested_tag:
            continue
        if name == "t" and child.text:
            parts.append(child.text)
        elif name in {"tab", "br", "cr"}:
            parts.append(" ")
        elif nested_tag is None and child.text and child.text.strip():
            parts.append(child.text)
        parts.extend(_paragraph_parts(child, nested_tag))
        if nested_tag is None and child.tail and child.tail.strip():
            parts.append(child.tail)
    return parts
