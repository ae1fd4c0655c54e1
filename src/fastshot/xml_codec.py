"""Conversion between XML documents and plain Python dicts.

Dicts use the shape produced by :func:`xml_to_dict`: a single top-level key
naming the root element, ``@name`` keys for attributes, ``#text`` for text
mixed with children, repeated tags as lists and empty elements as None.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Any


def xml_to_dict(xml_bytes: bytes) -> dict[str, Any]:
    """Parse XML bytes into a dict keyed by the root tag.

    Namespace URIs are stripped from tag names.

    Raises:
        ET.ParseError: If ``xml_bytes`` is not well-formed XML.
    """
    root = ET.fromstring(xml_bytes)
    return {_strip_ns(root.tag): _element_to_dict(root)}


def _strip_ns(tag: str) -> str:
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def _element_to_dict(element: ET.Element) -> dict[str, Any] | str | None:
    result: dict[str, Any] = {}

    for attr_name, attr_value in element.attrib.items():
        if attr_name.startswith("xmlns") or attr_name.startswith("{"):
            continue
        result[f"@{attr_name}"] = attr_value

    children_by_tag: dict[str, list[Any]] = {}
    for child in element:
        children_by_tag.setdefault(_strip_ns(child.tag), []).append(
            _element_to_dict(child)
        )
    for tag, values in children_by_tag.items():
        result[tag] = values if len(values) > 1 else values[0]

    text = (element.text or "").strip()
    if text:
        if not result:
            return text
        result["#text"] = text

    if not result:
        return None
    return result


def to_element(obj: Any) -> ET.Element:
    """Return ``obj`` as an element.

    Accepts an existing :class:`ET.Element` or a dict with exactly one
    top-level key (the root element name).

    Raises:
        ValueError: If ``obj`` is neither.
    """
    if isinstance(obj, ET.Element):
        return obj
    if not isinstance(obj, dict) or len(obj) != 1:
        raise ValueError(
            "XML body must be an Element or a dict with exactly one "
            f"top-level key, got {type(obj).__name__}"
        )
    root_tag = next(iter(obj))
    return _dict_to_element(str(root_tag), obj[root_tag])


def dict_to_xml(obj: Any) -> bytes:
    """Serialize ``obj`` (see :func:`to_element`) to UTF-8 XML bytes."""
    return ET.tostring(to_element(obj), encoding="utf-8", xml_declaration=True)


def _dict_to_element(tag: str, value: Any) -> ET.Element:
    element = ET.Element(tag)

    if value is None:
        pass
    elif isinstance(value, dict):
        for key, child_value in value.items():
            key = str(key)
            if key == "#text":
                element.text = str(child_value)
            elif key.startswith("@"):
                element.set(key[1:], str(child_value))
            elif isinstance(child_value, list):
                for item in child_value:
                    element.append(_dict_to_element(key, item))
            else:
                element.append(_dict_to_element(key, child_value))
    elif isinstance(value, list):
        for item in value:
            element.append(_dict_to_element("item", item))
    elif isinstance(value, bool):
        element.text = "true" if value else "false"
    else:
        element.text = str(value)

    return element
