"""
Remote translation endpoint interface.

The session state machine talks to the remote service only through
``Endpoint``. Any service offering persistent assistant profiles,
conversations, messages and polled runs fits this shape; the production
implementation is ``rosetta.translate.openai_assistants``.

Implementations raise the ``rosetta.errors`` remote taxonomy:
RemoteConnectionError and RemoteDeserializationError for failures worth
retrying, RemoteApiError for errors the service reported.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RunStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    FAILED = "failed"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    EXPIRED = "expired"


class RunErrorCode(str, Enum):
    SERVER_ERROR = "server_error"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    INVALID_PROMPT = "invalid_prompt"


@dataclass(frozen=True)
class Run:
    """One execution of the profile against a conversation."""
    id: str
    status: RunStatus
    error_code: Optional[str] = None
    error_message: str = ""
    incomplete_reason: Optional[str] = None


@dataclass(frozen=True)
class MessageContent:
    type: str
    text: Optional[str] = None


@dataclass(frozen=True)
class Message:
    id: str
    contents: tuple[MessageContent, ...] = ()


@dataclass(frozen=True)
class ProfileSpec:
    """Desired state of the remote translator profile."""
    name: str
    description: str
    instructions: str
    model: str
    temperature: float = 1.0
    top_p: float = 1.0


class Endpoint(ABC):
    """Capability handle for the remote conversational service."""

    @abstractmethod
    def upsert_profile(self, spec: ProfileSpec) -> str:
        """Create the profile named ``spec.name`` or update it in place.

        Returns:
            The profile id
        """

    @abstractmethod
    def create_conversation(self) -> str:
        """Open an empty conversation and return its id."""

    @abstractmethod
    def post_message(self, conversation_id: str, text: str) -> str:
        """Append a user message and return its id."""

    @abstractmethod
    def start_run(self, conversation_id: str, profile_id: str) -> Run:
        pass

    @abstractmethod
    def get_run(self, conversation_id: str, run_id: str) -> Run:
        pass

    @abstractmethod
    def list_messages_after(self, conversation_id: str, run_id: str, message_id: str) -> list[Message]:
        """Messages created by ``run_id`` after ``message_id``, oldest first."""

    @abstractmethod
    def delete_conversation(self, conversation_id: str) -> None:
        pass
