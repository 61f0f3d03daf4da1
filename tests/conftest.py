"""
Shared fixtures: in-memory stand-ins for the remote endpoint, the parser
and the output sink, so no test needs the network or a pandoc binary.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from rosetta.ingest.pandoc import Parser
from rosetta.models import Section
from rosetta.render.pandoc import OutputSink, OutputSinkBuilder
from rosetta.translate.endpoint import (
    Endpoint,
    Message,
    MessageContent,
    ProfileSpec,
    Run,
    RunStatus,
)
from rosetta.translate.retry import RetryPolicy


def run_step(status: RunStatus, error_code: str | None = None, message: str = "") -> tuple:
    return (status, error_code, message)


class FakeEndpoint(Endpoint):
    """Scripted assistant endpoint.

    ``runs`` is a list of scripts, one per started run. The first step of a
    script is what ``start_run`` returns, the rest are returned by
    successive ``get_run`` polls. When the scripts run out every run
    completes immediately.

    ``failures`` maps a method name to exceptions raised by its next calls.
    """

    def __init__(self, runs=None, reply=None, failures=None):
        self.runs = [list(script) for script in (runs or [])]
        self.reply = reply or (lambda text: f"<{text}>")
        self.failures = {name: list(errors) for name, errors in (failures or {}).items()}
        self.responses: list[list[Message]] = []

        self.profiles: dict[str, tuple[str, ProfileSpec]] = {}
        self.upserts: list[ProfileSpec] = []
        self.conversations: list[str] = []
        self.deleted: list[str] = []
        self.posted: list[tuple[str, str]] = []
        self.started_runs = 0
        self.polls = 0
        self._script: list[tuple] = []
        self._last_text = ""

    def _maybe_fail(self, name: str) -> None:
        pending = self.failures.get(name)
        if pending:
            raise pending.pop(0)

    def _run(self, step: tuple) -> Run:
        status, error_code, message = step
        return Run(
            id=f"run_{self.started_runs}",
            status=status,
            error_code=error_code,
            error_message=message,
            incomplete_reason="max_tokens" if status == RunStatus.INCOMPLETE else None,
        )

    def upsert_profile(self, spec: ProfileSpec) -> str:
        self._maybe_fail("upsert_profile")
        self.upserts.append(spec)
        profile_id = self.profiles.get(spec.name, (f"asst_{len(self.profiles) + 1}", spec))[0]
        self.profiles[spec.name] = (profile_id, spec)
        return profile_id

    def create_conversation(self) -> str:
        self._maybe_fail("create_conversation")
        conversation_id = f"thread_{len(self.conversations) + 1}"
        self.conversations.append(conversation_id)
        return conversation_id

    def post_message(self, conversation_id: str, text: str) -> str:
        self._maybe_fail("post_message")
        self.posted.append((conversation_id, text))
        self._last_text = text
        return f"msg_{len(self.posted)}"

    def start_run(self, conversation_id: str, profile_id: str) -> Run:
        self._maybe_fail("start_run")
        self.started_runs += 1
        self._script = self.runs.pop(0) if self.runs else [run_step(RunStatus.COMPLETED)]
        return self._run(self._script.pop(0))

    def get_run(self, conversation_id: str, run_id: str) -> Run:
        self._maybe_fail("get_run")
        self.polls += 1
        return self._run(self._script.pop(0))

    def list_messages_after(self, conversation_id: str, run_id: str, message_id: str) -> list[Message]:
        self._maybe_fail("list_messages_after")
        if self.responses:
            return self.responses.pop(0)
        content = MessageContent(type="text", text=self.reply(self._last_text))
        return [Message(id=f"reply_{message_id}", contents=(content,))]

    def delete_conversation(self, conversation_id: str) -> None:
        self._maybe_fail("delete_conversation")
        self.deleted.append(conversation_id)


class FakeParser(Parser):
    """Returns fixed sections whatever the file holds."""

    def __init__(self, sections: list[Section]):
        self.sections = sections
        self.calls: list[tuple[Path, int]] = []

    def parse(self, path: Path, max_section_len: int) -> list[Section]:
        self.calls.append((path, max_section_len))
        return list(self.sections)


class FakeSink(OutputSink):
    def __init__(self):
        self.written: list[Section] = []
        self.finalized = False
        self.closed = False

    def write(self, section: Section) -> None:
        self.written.append(section)

    def finalize(self) -> None:
        self.finalized = True

    def close(self) -> None:
        self.closed = True


class FakeSinkBuilder(OutputSinkBuilder):
    """Hands out one FakeSink and a fixed partial translation."""

    def __init__(self, already_translated: list[Section] | None = None):
        self.already_translated = already_translated or []
        self.sink = FakeSink()
        self.builds: list[tuple[Path, bool, int]] = []

    def build(self, output_path, continue_translation, max_section_len):
        self.builds.append((output_path, continue_translation, max_section_len))
        return self.sink, list(self.already_translated)


@pytest.fixture
def fast_policy():
    """Retry policy with no polling delay and deterministic backoff."""
    return RetryPolicy(poll_interval=0.0, jitter=0.0)


@pytest.fixture
def sleeps():
    """Records backoff sleeps instead of sleeping."""
    return []


@pytest.fixture
def input_file(tmp_path):
    path = tmp_path / "book.md"
    path.write_text("placeholder\n", encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from the user's settings file."""
    monkeypatch.setenv("ROSETTA_CONFIG", str(tmp_path / "missing-config.toml"))
    monkeypatch.delenv("ROSETTA_OPENAI_MODEL", raising=False)


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo handlers and levels the CLI installs on the package logger."""
    logger = logging.getLogger("rosetta")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
