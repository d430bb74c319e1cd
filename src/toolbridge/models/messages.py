"""Conversation message models carrying tool invocation parts."""

from __future__ import annotations

from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

type ToolInvocationState = Literal["partial-call", "call", "result"]
type MessageRole = Literal["system", "user", "assistant", "data", "tool"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ToolCall(_CamelModel):
    """Tool call as first proposed by the assistant."""

    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)


class ToolInvocation(_CamelModel):
    """Proposed or resolved invocation embedded in a message part."""

    state: ToolInvocationState = "call"
    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    step: int | None = None


class TextPart(_CamelModel):
    type: Literal["text"] = "text"
    text: str


class ToolInvocationPart(_CamelModel):
    type: Literal["tool-invocation"] = "tool-invocation"
    tool_invocation: ToolInvocation


class OtherPart(BaseModel):
    """Any part kind this package does not interpret (reasoning, files, ...)."""

    model_config = ConfigDict(extra="allow")

    type: str


type MessagePart = Annotated[
    ToolInvocationPart | TextPart | OtherPart,
    Field(union_mode="left_to_right"),
]


class Message(_CamelModel):
    """One conversation message in the AI SDK UI message shape."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str = Field(default_factory=lambda: str(uuid4()))
    role: MessageRole
    content: str = ""
    parts: list[MessagePart] | None = None

    def tool_invocations(self) -> list[ToolInvocation]:
        return [
            part.tool_invocation
            for part in self.parts or []
            if isinstance(part, ToolInvocationPart)
        ]


def convert_to_core_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Normalize UI messages into `{role, content}` model messages.

    Resolved tool invocations become assistant `tool-call` entries followed by
    one `tool` message holding their results.
    """
    core: list[dict[str, Any]] = []
    for message in messages:
        match message.role:
            case "system" | "user":
                core.append({"role": message.role, "content": _message_text(message)})
            case "assistant":
                core.extend(_assistant_core_messages(message))
            case _:
                continue
    return core


def _message_text(message: Message) -> str:
    if not message.parts:
        return message.content
    texts = [part.text for part in message.parts if isinstance(part, TextPart)]
    return "".join(texts) if texts else message.content


def _assistant_core_messages(message: Message) -> list[dict[str, Any]]:
    invocations = message.tool_invocations()
    if not invocations:
        return [{"role": "assistant", "content": _message_text(message)}]

    content: list[dict[str, Any]] = []
    for part in message.parts or []:
        if isinstance(part, TextPart) and part.text:
            content.append({"type": "text", "text": part.text})
        elif isinstance(part, ToolInvocationPart):
            invocation = part.tool_invocation
            content.append(
                {
                    "type": "tool-call",
                    "toolCallId": invocation.tool_call_id,
                    "toolName": invocation.tool_name,
                    "args": invocation.args,
                }
            )

    results = [
        {
            "type": "tool-result",
            "toolCallId": invocation.tool_call_id,
            "toolName": invocation.tool_name,
            "result": invocation.result,
        }
        for invocation in invocations
        if invocation.state == "result"
    ]
    converted: list[dict[str, Any]] = [{"role": "assistant", "content": content}]
    if results:
        converted.append({"role": "tool", "content": results})
    return converted
