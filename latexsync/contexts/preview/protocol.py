"""
Viewer wire protocol.

Outbound (core -> viewer):
    {"type": "refresh", "revision": N}
    {"type": "scrollTo", "page": P, "x": X, "y": Y}
    {"type": "status", "state": "failed", "revision": N}

Inbound (viewer -> core):
    {"type": "ready", "projectPath": "/abs/main.tex"}
    {"type": "clicked", "page": P, "x": X, "y": Y}
    {"type": "loaded", "revision": N}
"""

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from typing_extensions import Annotated


class RefreshEvent(BaseModel):
    type: Literal["refresh"] = "refresh"
    revision: int


class ScrollToEvent(BaseModel):
    type: Literal["scrollTo"] = "scrollTo"
    page: int
    x: float
    y: float


class StatusEvent(BaseModel):
    type: Literal["status"] = "status"
    state: Literal["failed"] = "failed"
    revision: int


OutboundEvent = Union[RefreshEvent, ScrollToEvent, StatusEvent]


class ReadyMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["ready"]
    project_path: str = Field(alias="projectPath", min_length=1)


class ClickedMessage(BaseModel):
    type: Literal["clicked"]
    page: int = Field(ge=1)
    x: float
    y: float


class LoadedMessage(BaseModel):
    type: Literal["loaded"]
    revision: int = Field(ge=0)


InboundMessage = Annotated[
    Union[ReadyMessage, ClickedMessage, LoadedMessage],
    Field(discriminator="type"),
]

_inbound_adapter = TypeAdapter(InboundMessage)


def parse_inbound(raw: Union[str, bytes, dict]) -> InboundMessage:
    """Validate one inbound message. Raises pydantic.ValidationError."""
    if isinstance(raw, dict):
        return _inbound_adapter.validate_python(raw)
    return _inbound_adapter.validate_json(raw)


def encode(event: OutboundEvent) -> dict:
    return event.model_dump(by_alias=True)
