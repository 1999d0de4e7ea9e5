"""Encoding of classroom metadata into the provider's context annotation.

The media provider stores free-form annotations as a single string of
``key=value`` pairs separated by ``|``. The six classroom fields are written
in a fixed order::

    title=<t>|teacher=<t>|subject=<s>|class=<c>|description=<d>|fileType=<f>

Separator characters inside values are escaped with a backslash, which is the
escaping the provider's own parser understands. Values that contain no
separators encode exactly as the plain delimited format.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple


FIELD_SEPARATOR = "|"
KEY_SEPARATOR = "="
ESCAPE = "\\"

# (attribute name, annotation key), in wire order.
CONTEXT_KEYS: Tuple[Tuple[str, str], ...] = (
    ("title", "title"),
    ("teacher", "teacher"),
    ("subject", "subject"),
    ("class_name", "class"),
    ("description", "description"),
    ("file_type", "fileType"),
)

TITLE_FALLBACK = "Untitled Document"
UNKNOWN = "Unknown"

CLASS_OPTIONS: Tuple[str, ...] = ("Class 10", "Class 11", "Class 12")
SUBJECT_OPTIONS: Tuple[str, ...] = (
    "Mathematics",
    "Physics",
    "Chemistry",
    "Biology",
    "Computer Science",
)
FILE_TYPE_OPTIONS: Tuple[str, ...] = ("PDF", "Video", "PPT", "Image", "Other")

DEFAULT_CLASS = CLASS_OPTIONS[0]
DEFAULT_SUBJECT = SUBJECT_OPTIONS[0]
DEFAULT_FILE_TYPE = FILE_TYPE_OPTIONS[0]


class MetadataValidationError(ValueError):
    """Raised when a submitted metadata record lacks a required field."""


@dataclass(frozen=True)
class ContentMetadata:
    """The six descriptive fields attached to a content item."""

    title: Optional[str] = None
    teacher: Optional[str] = None
    subject: Optional[str] = None
    class_name: Optional[str] = None
    description: Optional[str] = None
    file_type: Optional[str] = None

    def to_form(self) -> Dict[str, str]:
        """Return the field names used by the upload form and the update payload."""

        return {
            "title": self.title or "",
            "teacher": self.teacher or "",
            "subject": self.subject or "",
            "className": self.class_name or "",
            "description": self.description or "",
            "fileType": self.file_type or "",
        }

    def merged(self, **changes: Optional[str]) -> "ContentMetadata":
        """Return a copy where every non-``None`` entry of ``changes`` is applied."""

        known = {item.name for item in fields(self)}
        updates = {key: value for key, value in changes.items() if value is not None and key in known}
        return replace(self, **updates)


def _escape(value: str) -> str:
    return value.replace(FIELD_SEPARATOR, ESCAPE + FIELD_SEPARATOR).replace(
        KEY_SEPARATOR, ESCAPE + KEY_SEPARATOR
    )


def encode_context(metadata: ContentMetadata) -> str:
    """Serialise ``metadata`` into the provider's delimited annotation string."""

    parts: List[str] = []
    for attribute, key in CONTEXT_KEYS:
        value = getattr(metadata, attribute)
        parts.append(f"{key}{KEY_SEPARATOR}{_escape(value or '')}")
    return FIELD_SEPARATOR.join(parts)


def parse_context(text: str) -> Dict[str, str]:
    """Split an annotation string into its key/value pairs, honouring escapes.

    The provider parses stored annotations itself and returns them as a map,
    so the portal never calls this at runtime; it is the inverse of
    :func:`encode_context` used to check the wire format.
    """

    pairs: Dict[str, str] = {}
    if not text:
        return pairs

    segments: List[str] = []
    current: List[str] = []
    index = 0
    while index < len(text):
        char = text[index]
        if char == ESCAPE and index + 1 < len(text) and text[index + 1] in (FIELD_SEPARATOR, KEY_SEPARATOR):
            current.append(char)
            current.append(text[index + 1])
            index += 2
            continue
        if char == FIELD_SEPARATOR:
            segments.append("".join(current))
            current = []
        else:
            current.append(char)
        index += 1
    segments.append("".join(current))

    for segment in segments:
        key, value = _split_pair(segment)
        if key:
            pairs[key] = value
    return pairs


def _split_pair(segment: str) -> Tuple[str, str]:
    index = 0
    while index < len(segment):
        char = segment[index]
        if char == ESCAPE and index + 1 < len(segment):
            index += 2
            continue
        if char == KEY_SEPARATOR:
            return _unescape(segment[:index]), _unescape(segment[index + 1 :])
        index += 1
    return _unescape(segment), ""


def _unescape(value: str) -> str:
    return value.replace(ESCAPE + FIELD_SEPARATOR, FIELD_SEPARATOR).replace(
        ESCAPE + KEY_SEPARATOR, KEY_SEPARATOR
    )


def decode_context(values: Optional[Mapping[str, Any]]) -> ContentMetadata:
    """Build :class:`ContentMetadata` from the provider's parsed annotation map.

    Missing and empty keys become ``None``; display fallbacks are applied by
    the presentation helpers, not here.
    """

    if not values:
        return ContentMetadata()
    decoded: Dict[str, Optional[str]] = {}
    for attribute, key in CONTEXT_KEYS:
        raw = values.get(key)
        decoded[attribute] = str(raw) if raw not in (None, "") else None
    return ContentMetadata(**decoded)


def display_title(metadata: ContentMetadata) -> str:
    return metadata.title or TITLE_FALLBACK


def display_teacher(metadata: ContentMetadata) -> str:
    return metadata.teacher or UNKNOWN


def display_file_type(metadata: ContentMetadata) -> str:
    return metadata.file_type or UNKNOWN


def edit_defaults(metadata: ContentMetadata, *, item_id: str) -> ContentMetadata:
    """Pre-fill an edit form the way the upload form would have."""

    return ContentMetadata(
        title=metadata.title or item_id,
        teacher=metadata.teacher or "",
        subject=metadata.subject or DEFAULT_SUBJECT,
        class_name=metadata.class_name or DEFAULT_CLASS,
        description=metadata.description or "",
        file_type=metadata.file_type or DEFAULT_FILE_TYPE,
    )


def detect_file_type(content_type: Optional[str]) -> str:
    """Guess the classroom file type from an upload's MIME type."""

    kind = (content_type or "").lower()
    if "pdf" in kind:
        return "PDF"
    if "video" in kind:
        return "Video"
    if "image" in kind:
        return "Image"
    if "presentation" in kind or "powerpoint" in kind:
        return "PPT"
    return "Other"


def validate_required(metadata: ContentMetadata) -> ContentMetadata:
    """Ensure the fields the forms mark as required are present."""

    missing = [
        label
        for label, value in (("title", metadata.title), ("teacher", metadata.teacher))
        if not (value or "").strip()
    ]
    if missing:
        raise MetadataValidationError(f"Missing required field(s): {', '.join(missing)}")
    return metadata


__all__ = [
    "CLASS_OPTIONS",
    "CONTEXT_KEYS",
    "ContentMetadata",
    "DEFAULT_CLASS",
    "DEFAULT_FILE_TYPE",
    "DEFAULT_SUBJECT",
    "FILE_TYPE_OPTIONS",
    "MetadataValidationError",
    "SUBJECT_OPTIONS",
    "TITLE_FALLBACK",
    "UNKNOWN",
    "decode_context",
    "detect_file_type",
    "display_file_type",
    "display_teacher",
    "display_title",
    "edit_defaults",
    "encode_context",
    "parse_context",
    "validate_required",
]
