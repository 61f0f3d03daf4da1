"""
OpenAI Assistants implementation of the remote endpoint.

Maps the endpoint operations onto the OpenAI SDK's beta Assistants API:
profiles are assistants, conversations are threads.

The SDK's own retry loop is disabled (``max_retries=0``); the session
decides what to retry. SDK exceptions are translated to the
``rosetta.errors`` taxonomy.

Usage:
    endpoint = OpenAIAssistantsEndpoint(api_key="sk-...")
    profile_id = endpoint.upsert_profile(spec)
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Optional

import openai
from openai import OpenAI

from rosetta.errors import (
    RemoteApiError,
    RemoteConnectionError,
    RemoteDeserializationError,
    RemoteError,
)
from rosetta.translate.endpoint import (
    Endpoint,
    Message,
    MessageContent,
    ProfileSpec,
    Run,
    RunStatus,
)

logger = logging.getLogger(__name__)


@contextmanager
def mapped_errors(what: str):
    """Re-raise OpenAI SDK exceptions as Rosetta remote errors."""
    try:
        yield
    except openai.APIConnectionError as e:
        raise RemoteConnectionError(f"{what}: {e}") from e
    except (openai.APIResponseValidationError, json.JSONDecodeError) as e:
        raise RemoteDeserializationError(f"{what}: {e}") from e
    except openai.APIStatusError as e:
        raise RemoteApiError(f"{what}: {e.message}", status_code=e.status_code) from e
    except openai.OpenAIError as e:
        raise RemoteError(f"{what}: {e}") from e


def to_run(obj) -> Run:
    last_error = getattr(obj, "last_error", None)
    incomplete = getattr(obj, "incomplete_details", None)
    return Run(
        id=obj.id,
        status=RunStatus(obj.status),
        error_code=last_error.code if last_error else None,
        error_message=last_error.message if last_error else "",
        incomplete_reason=incomplete.reason if incomplete else None,
    )


def to_message(obj) -> Message:
    contents = []
    for block in obj.content:
        if block.type == "text":
            contents.append(MessageContent(type="text", text=block.text.value))
        else:
            contents.append(MessageContent(type=block.type))
    return Message(id=obj.id, contents=tuple(contents))


class OpenAIAssistantsEndpoint(Endpoint):
    """OpenAI-backed endpoint.

    Args:
        api_key: OpenAI API key
        base_url: Optional API base URL (OpenAI-compatible servers)
        timeout: Per-request timeout in seconds
        client: Pre-built client, mainly for tests
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[OpenAI] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> OpenAI:
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise ValueError(
                    "OpenAI API key required. Set OPENAI_API_KEY environment variable "
                    "or run: rosetta keys set openai"
                )
            kwargs = {"api_key": self.api_key, "max_retries": 0, "timeout": self.timeout}
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self._client = OpenAI(**kwargs)
        return self._client

    def upsert_profile(self, spec: ProfileSpec) -> str:
        client = self._get_client()
        params = dict(
            model=spec.model,
            name=spec.name,
            description=spec.description,
            instructions=spec.instructions,
            temperature=spec.temperature,
            top_p=spec.top_p,
            response_format={"type": "text"},
        )
        with mapped_errors("Failed to list assistants"):
            existing = next(
                (a for a in client.beta.assistants.list(limit=100) if a.name == spec.name),
                None,
            )
        if existing is not None:
            logger.info("Updating assistant %s (%s)", spec.name, existing.id)
            with mapped_errors("Failed to update assistant"):
                return client.beta.assistants.update(existing.id, **params).id

        logger.info("Creating assistant %s", spec.name)
        with mapped_errors("Failed to create assistant"):
            return client.beta.assistants.create(**params).id

    def create_conversation(self) -> str:
        with mapped_errors("Failed to create thread"):
            return self._get_client().beta.threads.create().id

    def post_message(self, conversation_id: str, text: str) -> str:
        with mapped_errors("Failed to send message"):
            message = self._get_client().beta.threads.messages.create(
                conversation_id, role="user", content=text
            )
        return message.id

    def start_run(self, conversation_id: str, profile_id: str) -> Run:
        with mapped_errors("Failed to create run"):
            run = self._get_client().beta.threads.runs.create(
                thread_id=conversation_id, assistant_id=profile_id
            )
        return to_run(run)

    def get_run(self, conversation_id: str, run_id: str) -> Run:
        with mapped_errors("Failed to retrieve run"):
            run = self._get_client().beta.threads.runs.retrieve(run_id, thread_id=conversation_id)
        return to_run(run)

    def list_messages_after(self, conversation_id: str, run_id: str, message_id: str) -> list[Message]:
        with mapped_errors("Failed to list messages"):
            page = self._get_client().beta.threads.messages.list(
                conversation_id, run_id=run_id, order="asc", after=message_id
            )
            return [to_message(m) for m in page]

    def delete_conversation(self, conversation_id: str) -> None:
        with mapped_errors("Failed to delete thread"):
            self._get_client().beta.threads.delete(conversation_id)
