"""
Document Schemas for the single-room chat

Each Pydantic model describes a JSON document stored in the key-value table.
Field names are snake_case in Python and camelCase on the wire.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List

GUEST_NAME = "гость"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    def to_doc(self) -> dict:
        return self.model_dump(by_alias=True)


class Message(CamelModel):
    """
    A chat message
    Key: "msg_<id>"
    """
    id: str = Field(..., min_length=1, description="Client generated id (epoch ms)")
    username: str = Field(GUEST_NAME, description="Display name of the author")
    text: str = Field("", max_length=4000, description="Message text, may carry spoiler/file markup")
    timestamp: int = Field(..., description="Creation time in epoch milliseconds")
    reply_to: Optional[str] = Field(None, description="Id of the message being replied to")
    file_url: Optional[str] = Field(None, description="Signed URL of the attachment")
    file_type: Optional[str] = Field(None, description="Attachment mime type")
    file_name: Optional[str] = Field(None, description="Original attachment filename")
    edited: bool = Field(False, description="Edited marker")
    edited_at: Optional[int] = Field(None, description="Last edit time in epoch milliseconds")
    name_color: Optional[str] = Field(None, description="Per-user name colour")
    message_background: Optional[str] = Field(None, description="Per-user bubble colour")


class Settings(CamelModel):
    """
    Room appearance, one document
    Key: "chat_settings"
    """
    background_image: Optional[str] = Field(None, description="Background image URL")
    panel_color: str = Field("#1a1a1a", description="Hex colour of header/footer panels")
    icon_color: str = Field("#64b5f6", description="Hex colour of icons")
    panel_opacity: float = Field(0.85, allow_inf_nan=False, description="Panel alpha, 0..1")

    @field_validator("panel_opacity")
    @classmethod
    def clamp_opacity(cls, v: float) -> float:
        return min(max(v, 0.0), 1.0)


class PresenceRecord(CamelModel):
    id: str
    last_seen: int


class Stats(CamelModel):
    """
    View counter and presence heartbeats
    Key: "chat_stats"
    """
    views: int = Field(0, ge=0)
    online_users: List[PresenceRecord] = Field(default_factory=list)
