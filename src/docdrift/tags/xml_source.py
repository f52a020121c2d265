"""XML access for XPath and element-id references."""

from __future__ import annotations

import math
from collections.abc import Mapping
from decimal import Decimal
from pathlib import Path

from lxml import etree

ELEMENT_BY_ID_XPATH = "//*[@id=$element_id]"


def _parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)


def load_tree(path: Path) -> etree._ElementTree:
    return etree.parse(str(path), _parser())


def _number_to_string(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == int(value):
        return str(int(value))
    # XPath never uses exponent notation; expand the shortest round-trip digits.
    text = format(Decimal(repr(value)), "f")
    return text.rstrip("0").rstrip(".") if "." in text else text


def _node_string(node: object) -> str:
    if isinstance(node, str):
        return str(node)
    if isinstance(node, etree._Element):
        return "".join(node.itertext())
    if isinstance(node, etree._ElementTree):
        return "".join(node.getroot().itertext())
    return str(node)


def string_value(result: object) -> str:
    """Coerce an XPath result to its string value.

    A node-set yields the string value of its first node, numbers use the
    XPath number formatting, booleans become `true`/`false`.
    """
    if isinstance(result, bool):
        return "true" if result else "false"
    if isinstance(result, float):
        return _number_to_string(result)
    if isinstance(result, list):
        return _node_string(result[0]) if result else ""
    return _node_string(result)


def evaluate_string(tree: etree._ElementTree, expression: str, namespaces: Mapping[str, str] | None = None) -> str:
    result = tree.xpath(expression, namespaces=dict(namespaces or {}) or None)
    return string_value(result)


def find_element_by_id(tree: etree._ElementTree, element_id: str) -> etree._Element | None:
    matches = tree.xpath(ELEMENT_BY_ID_XPATH, element_id=element_id)
    return matches[0] if matches else None
