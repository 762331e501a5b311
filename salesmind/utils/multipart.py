"""Byte-level multipart/form-data decoding.

The whole request body is parsed in memory; callers are expected to cap the
body size before handing it over (see ``StorageConfig.max_upload_bytes``).
"""

from __future__ import annotations

from dataclasses import dataclass, field

_CRLF = b"\r\n"
_LF = b"\n"
_DEFAULT_PART_TYPE = "text/plain"


class MalformedRequestError(ValueError):
    """Raised when the request is not a usable multipart/form-data payload."""


@dataclass(frozen=True)
class FilePart:
    """A file field extracted from the multipart body."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class FormData:
    """Decoded text fields and file parts keyed by field name."""

    fields: dict[str, str] = field(default_factory=dict)
    files: dict[str, FilePart] = field(default_factory=dict)

    def get_field(self, name: str) -> str | None:
        return self.fields.get(name)

    def get_file(self, name: str) -> FilePart | None:
        return self.files.get(name)


def extract_boundary(content_type: str | None) -> str:
    """Return the boundary token declared in a multipart content type."""

    if not content_type or not content_type.strip().lower().startswith("multipart/form-data"):
        raise MalformedRequestError("Content-Type must be multipart/form-data")

    for parameter in content_type.split(";")[1:]:
        key, _, value = parameter.strip().partition("=")
        if key.strip().lower() == "boundary":
            boundary = value.strip().strip('"')
            if boundary:
                return boundary
    raise MalformedRequestError("No boundary found in Content-Type")


def _header_param(header_line: str, name: str) -> str | None:
    """Pull ``name="value"`` (or an unquoted value) out of a header line."""

    for segment in header_line.split(";")[1:]:
        key, sep, value = segment.strip().partition("=")
        if not sep or key.strip().lower() != name:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        return value
    return None


def _parse_part_headers(raw_headers: bytes) -> tuple[str | None, str | None, str]:
    name: str | None = None
    filename: str | None = None
    content_type = _DEFAULT_PART_TYPE

    for line in raw_headers.decode("utf-8", errors="replace").splitlines():
        header, _, _ = line.partition(":")
        header = header.strip().lower()
        if header == "content-disposition":
            name = _header_param(line, "name")
            filename = _header_param(line, "filename")
        elif header == "content-type":
            content_type = line.partition(":")[2].strip() or _DEFAULT_PART_TYPE
    return name, filename, content_type


def parse_multipart(content_type: str | None, body: bytes) -> FormData:
    """Decode ``body`` according to the boundary found in ``content_type``."""

    boundary = extract_boundary(content_type)
    marker = b"--" + boundary.encode("utf-8")
    form = FormData()

    position = body.find(marker)
    while position != -1:
        cursor = position + len(marker)
        if body.startswith(b"--", cursor):
            break  # closing delimiter
        if body.startswith(_CRLF, cursor):
            cursor += len(_CRLF)
            line_endings = (_CRLF, _LF)
        elif body.startswith(_LF, cursor):
            cursor += len(_LF)
            line_endings = (_LF, _CRLF)
        else:
            line_endings = (_CRLF, _LF)

        # Header and content of this part must both sit before the next marker.
        next_marker = body.find(marker, cursor)
        if next_marker == -1:
            raise MalformedRequestError("Multipart body is missing its closing boundary")

        header_end = -1
        for line_ending in line_endings:
            if body.startswith(line_ending, cursor):
                header_end = cursor
                content_start = cursor + len(line_ending)
                break
            header_end = body.find(line_ending * 2, cursor, next_marker)
            if header_end != -1:
                content_start = header_end + 2 * len(line_ending)
                break
        if header_end == -1:
            raise MalformedRequestError("Multipart part is missing its header terminator")

        content_end = next_marker
        if body.endswith(line_ending, content_start, content_end):
            content_end -= len(line_ending)

        name, filename, part_type = _parse_part_headers(body[cursor:header_end])
        content = body[content_start:content_end]
        if name is not None:
            if filename is not None:
                form.files[name] = FilePart(filename=filename, content_type=part_type, data=content)
            else:
                form.fields[name] = content.decode("utf-8", errors="replace")

        position = next_marker

    return form


__all__ = [
    "FilePart",
    "FormData",
    "MalformedRequestError",
    "extract_boundary",
    "parse_multipart",
]
