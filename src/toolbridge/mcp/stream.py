"""Data stream parts written to the live chat response."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Final, Literal, Protocol

type StreamPartType = Literal["text", "data", "error", "message_annotations", "tool_result"]

STREAM_PART_CODES: Final[dict[str, str]] = {
    "text": "0",
    "data": "2",
    "error": "3",
    "message_annotations": "8",
    "tool_result": "a",
}
_CODE_TO_TYPE: Final[dict[str, str]] = {code: name for name, code in STREAM_PART_CODES.items()}


class DataStreamWriter(Protocol):
    """Live output stream consumed by the chat client."""

    def write(self, part: str) -> None:
        """Write one pre-formatted stream part."""

    def write_message_annotation(self, annotation: dict[str, Any]) -> None:
        """Attach one annotation to the message being streamed."""


def format_data_stream_part(part_type: StreamPartType, value: Any) -> str:
    """Encode one part as a `<code>:<json>` line."""
    code = STREAM_PART_CODES[part_type]
    return f"{code}:{json.dumps(value, separators=(',', ':'), default=str)}\n"


def parse_data_stream_part(line: str) -> tuple[str, Any]:
    """Decode one `<code>:<json>` line into `(part_type, value)`."""
    code, sep, payload = line.rstrip("\n").partition(":")
    if not sep or code not in _CODE_TO_TYPE:
        msg = f"Invalid data stream part: {line!r}"
        raise ValueError(msg)
    return _CODE_TO_TYPE[code], json.loads(payload)


@dataclass(slots=True)
class DataStreamBuffer:
    """In-memory stream writer that keeps every written part in order."""

    parts: list[str] = field(default_factory=list)

    def write(self, part: str) -> None:
        self.parts.append(part)

    def write_message_annotation(self, annotation: dict[str, Any]) -> None:
        self.write(format_data_stream_part("message_annotations", [annotation]))

    def events(self) -> list[tuple[str, Any]]:
        return [parse_data_stream_part(part) for part in self.parts]

    def tool_results(self) -> list[dict[str, Any]]:
        return [value for kind, value in self.events() if kind == "tool_result"]

    def annotations(self) -> list[dict[str, Any]]:
        found: list[dict[str, Any]] = []
        for kind, value in self.events():
            if kind == "message_annotations":
                found.extend(value)
        return found
