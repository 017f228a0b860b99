from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HubMessage(BaseModel):
    """A real-time event exchanged with a connected client."""

    model_config = ConfigDict(extra="ignore")

    event: str = Field(min_length=1, description="Event name, e.g. `subscribe:posts`")
    data: Any = Field(default=None, description="Event payload")


class FanoutMessage(HubMessage):
    """An event addressed to a room, as published on the store channel."""

    room: str = Field(min_length=1, description="Target room, e.g. `post:<id>`")

    def for_client(self) -> HubMessage:
        return HubMessage(event=self.event, data=self.data)


class HubStatusResponse(BaseModel):
    """Snapshot of the local notification hub."""

    distributed: bool = Field(description="Whether cross-process fan-out is active")
    connections: int
    rooms: int
