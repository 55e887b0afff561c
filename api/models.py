"""Pydantic request/response schemas for the FastAPI backend."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---- Requests ----

class WordPressContext(BaseModel):
    """The document open in the editor when the message was sent."""
    model_config = ConfigDict(extra="allow")

    current_post_id: Optional[int] = None
    post_type: Optional[str] = None
    post_title: Optional[str] = None
    post_status: Optional[str] = None
    blocks_count: Optional[int] = None


class ProcessRequest(BaseModel):
    message: str = Field(..., min_length=1, description="User message to send to the agent")
    options: dict[str, Any] = Field(default_factory=dict)
    conversation_id: Optional[str] = None
    wordpress_context: Optional[WordPressContext] = None

    def turn_options(self) -> dict[str, Any]:
        """Merge top-level fields into ``options`` (top-level wins)."""
        merged = dict(self.options)
        if self.conversation_id:
            merged["conversation_id"] = self.conversation_id
        if self.wordpress_context is not None:
            merged["wordpress_context"] = self.wordpress_context.model_dump(exclude_none=True)
        return merged


class EditorResponse(BaseModel):
    """Out-of-band reply from the live editor to a deferred command."""
    model_config = ConfigDict(populate_by_name=True)

    request_id: str = Field(..., min_length=1, alias="requestId")
    success: bool = True
    data: Any = None
    error: Optional[str] = None


# ---- Responses ----

class HealthStatus(BaseModel):
    status: str = "ok"
    environment: str
    timestamp: str


class ConversationSummary(BaseModel):
    id: str
    created_at: str
    updated_at: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    message_count: int = 0


class ConversationDetail(ConversationSummary):
    history: list[dict[str, Any]] = Field(default_factory=list)


class ServerStats(BaseModel):
    total_conversations: int = 0
    total_messages: int = 0
    average_messages_per_conversation: float = 0
    pending_requests: int = 0
    uptime_seconds: float = 0.0


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    kind: Optional[str] = None
    details: Optional[dict[str, Any]] = None
