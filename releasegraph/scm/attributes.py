"""
Version attributes recorded in commit and tag messages.

Attributes are a flat string to string map written as a compact JSON object
at the very start of the message, followed by a space and the human readable
text:

    {"releasegraph-base-version":"D/master"} Created version D/feature.

A message that does not start with a JSON object has no attributes.
"""

import json
from typing import Dict, Optional, Tuple

ATTR_BASE_VERSION = "releasegraph-base-version"
ATTR_BASE_VERSION_COMMIT_ID = "releasegraph-base-version-commit-id"
ATTR_REFERENCE_VERSION_CHANGE = "releasegraph-reference-version-change"
ATTR_VERSION_CHANGE = "releasegraph-version-change"
ATTR_EQUIVALENT_STATIC_VERSION = "releasegraph-equivalent-static-version"

_decoder = json.JSONDecoder()


def parse_message(message: Optional[str]) -> Tuple[Dict[str, str], str]:
    """
    Split a message into its attributes and its human readable text.

    Non string values of the JSON object are ignored. A message starting with
    "{" that is not valid JSON is treated as plain text.
    """
    if not message or not message.startswith("{"):
        return {}, message or ""
    try:
        data, end = _decoder.raw_decode(message)
    except ValueError:
        return {}, message
    if not isinstance(data, dict):
        return {}, message
    attributes = {k: v for k, v in data.items() if isinstance(v, str)}
    text = message[end:]
    if text.startswith(" "):
        text = text[1:]
    return attributes, text


def get_attributes(message: Optional[str]) -> Dict[str, str]:
    return parse_message(message)[0]


def format_message(message: str, attributes: Optional[Dict[str, str]] = None) -> str:
    """Prefix message with the attribute block, if there are attributes."""
    if not attributes:
        return message
    block = json.dumps(attributes, separators=(",", ":"))
    return f"{block} {message}"


def is_version_changing(attributes: Dict[str, str]) -> bool:
    """Whether a commit only records a version or reference version change."""
    return (
        attributes.get(ATTR_REFERENCE_VERSION_CHANGE) == "true"
        or attributes.get(ATTR_VERSION_CHANGE) == "true"
    )
