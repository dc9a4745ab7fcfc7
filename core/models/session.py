"""Session model."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from ..exceptions import InvalidOperationError
from .message import Message
from .utils import gen_id


class FileHandleTable(BaseModel):
    next_id: int = 1
    by_id: dict[str, str] = Field(default_factory=dict)


class HandleRange(BaseModel):
    start_line: int
    start_character: int = 1
    end_line: int | None = None
    end_character: int | None = None


class SemanticHandle(BaseModel):
    kind: Literal["match", "symbol", "loc"]
    file_id: str
    file_path: str
    range: HandleRange
    label: str | None = None


class SemanticHandleTable(BaseModel):
    next_match_id: int = 1
    next_symbol_id: int = 1
    next_loc_id: int = 1
    by_id: dict[str, SemanticHandle] = Field(default_factory=dict)


class SessionSnapshot(BaseModel):
    """Serializable form of a Session, opaque to callers."""

    version: int = 1
    session_id: str
    parent_session_id: str | None = None
    subagent_type: str | None = None
    model_id: str | None = None
    history: list[Message] = Field(default_factory=list)
    pending_plan: str | None = None
    mentioned_skills: list[str] = Field(default_factory=list)
    file_handles: FileHandleTable = Field(default_factory=FileHandleTable)
    semantic_handles: SemanticHandleTable = Field(default_factory=SemanticHandleTable)


class Session(BaseModel):
    """One conversation: ordered history plus auxiliary handle tables.

    A session is mutated only by the run loop currently holding it.
    """

    id: str = Field(default_factory=lambda: gen_id("ses_"))
    parent_session_id: str | None = None
    subagent_type: str | None = Field(
        default=None,
        description="Set when this session belongs to a subagent spawned by the task tool",
    )
    model_id: str | None = Field(
        default=None,
        description="Model override recorded for this session",
    )
    history: list[Message] = Field(default_factory=list)
    pending_plan: str | None = None
    mentioned_skills: list[str] = Field(default_factory=list)
    file_handles: FileHandleTable = Field(default_factory=FileHandleTable)
    semantic_handles: SemanticHandleTable = Field(default_factory=SemanticHandleTable)

    @property
    def is_subagent(self) -> bool:
        return bool(self.parent_session_id or self.subagent_type)

    def append(self, message: Message) -> Message:
        """
        Append a message to the history.

        Raises:
            InvalidOperationError: If a message with the same id already exists
        """
        if any(existing.id == message.id for existing in self.history):
            raise InvalidOperationError(f"Duplicate message id: {message.id}")
        self.history.append(message)
        return message

    def get_history(self) -> list[Message]:
        """Return a deep copy of the history that callers may keep."""
        return [message.model_copy(deep=True) for message in self.history]

    def export_snapshot(self) -> dict[str, Any]:
        """Serialize history, pending plan and handle tables."""
        snapshot = SessionSnapshot(
            session_id=self.id,
            parent_session_id=self.parent_session_id,
            subagent_type=self.subagent_type,
            model_id=self.model_id,
            history=self.history,
            pending_plan=self.pending_plan,
            mentioned_skills=self.mentioned_skills,
            file_handles=self.file_handles,
            semantic_handles=self.semantic_handles,
        )
        return snapshot.model_dump(mode="json")

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> "Session":
        """Restore a session from export_snapshot() output."""
        snapshot = SessionSnapshot.model_validate(data)
        return cls(
            id=snapshot.session_id,
            parent_session_id=snapshot.parent_session_id,
            subagent_type=snapshot.subagent_type,
            model_id=snapshot.model_id,
            history=snapshot.history,
            pending_plan=snapshot.pending_plan,
            mentioned_skills=snapshot.mentioned_skills,
            file_handles=snapshot.file_handles,
            semantic_handles=snapshot.semantic_handles,
        )
