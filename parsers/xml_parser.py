"""
XML parser for accounting-system exports.

The document is decoded into a dict tree (attributes as "@_name" keys,
repeated child tags as lists). The first list found walking the tree level
by level holds the records, e.g. <Fletes><Flete/><Flete/></Fletes>.
"""

from collections import deque
from typing import Any, Optional
import xml.etree.ElementTree as ET
import structlog

from exceptions import FileParseError
from parsers.tabular import ParsedTable

logger = structlog.get_logger(__name__)

ATTRIBUTE_PREFIX = "@_"
TEXT_KEY = "#text"


def parse_xml(content: bytes) -> ParsedTable:
    """
    Parse an XML document into rows.

    Args:
        content: Raw XML bytes

    Returns:
        ParsedTable; the header list excludes attribute keys,
        the rows keep them

    Raises:
        FileParseError: If the document is not well-formed
    """
    logger.info("parsing_xml", size=len(content))

    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        logger.error("xml_read_failed", error=str(e))
        raise FileParseError(
            file_format="XML",
            message="Failed to read XML file",
            details={"original_error": str(e)}
        )

    root_value = element_to_value(root)
    records = _extract_records(root_value) if isinstance(root_value, dict) else []

    rows = [record if isinstance(record, dict) else {TEXT_KEY: record} for record in records]
    if not rows:
        return ParsedTable()

    headers = [key for key in rows[0] if not key.startswith(ATTRIBUTE_PREFIX)]

    logger.info("xml_parsed", columns=len(headers), rows=len(rows))

    return ParsedTable(headers=headers, rows=rows)


def element_to_value(element: ET.Element) -> Any:
    """
    Convert an element to a scalar (leaf text) or a dict.

    Leaves without attributes become their stripped text ("" when empty).
    """
    children = list(element)
    text = (element.text or "").strip()

    if not children and not element.attrib:
        return text

    value: dict[str, Any] = {}
    for name, attr in element.attrib.items():
        value[f"{ATTRIBUTE_PREFIX}{_local_name(name)}"] = attr

    for child in children:
        tag = _local_name(child.tag)
        child_value = element_to_value(child)
        if tag in value:
            existing = value[tag]
            if isinstance(existing, list):
                existing.append(child_value)
            else:
                value[tag] = [existing, child_value]
        else:
            value[tag] = child_value

    if text:
        value[TEXT_KEY] = text

    return value


def _extract_records(document: dict[str, Any]) -> list[Any]:
    """
    Find the record list.

    Breadth-first: every value of one level is checked for a list before
    descending. Without any list the first dict holding plain values is
    treated as the only record.
    """
    queue = deque([document])
    single_record: Optional[dict] = None

    while queue:
        node = queue.popleft()

        for value in node.values():
            if isinstance(value, list):
                return value

        if single_record is None and _has_scalar_fields(node):
            single_record = node

        for value in node.values():
            if isinstance(value, dict):
                queue.append(value)

    if single_record is not None:
        return [single_record]
    return []


def _has_scalar_fields(node: dict[str, Any]) -> bool:
    return any(
        not isinstance(value, (dict, list)) and not key.startswith(ATTRIBUTE_PREFIX)
        for key, value in node.items()
    )


def _local_name(tag: str) -> str:
    """Strip an XML namespace: '{urn:x}Flete' -> 'Flete'."""
    if "}" in tag:
        return tag.rsplit("}", 1)[1]
    return tag
