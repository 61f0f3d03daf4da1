"""
Conversational translation session over a remote assistant endpoint.

One session is opened per pipeline run:

1. The TranslationConfig is rendered into the translator instructions and
   the ``rosetta-translator`` profile is created or updated in place, so
   repeated runs never leak duplicate profiles.
2. A fresh conversation is opened for the run.
3. Each subsection becomes one user message; a run of the profile is
   started and polled until it reaches a terminal state; the single reply
   message is the translation.
4. Closing the session deletes the conversation on a background thread.

Run states:
    queued, in_progress          keep polling
    completed                    done
    cancelling, cancelled        fatal
    expired                      fatal
    requires_action              fatal (no tools are configured)
    failed + rate_limit_exceeded back off, start a new run
    failed + invalid_prompt      fatal
    failed + server_error/none   retry within the sequential-error budget
    incomplete                   retry within the sequential-error budget
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, TypeVar

from rosetta.errors import InteractionError, TranslationCancelled
from rosetta.models import Section, Subsection, TranslationConfig
from rosetta.translate.base import Translator, TranslatorBuilder
from rosetta.translate.endpoint import Endpoint, ProfileSpec, Run, RunErrorCode, RunStatus
from rosetta.translate.retry import (
    RateLimited,
    RetryableError,
    RetryBudget,
    RetryPolicy,
    Sleep,
    call_with_retries,
    retrying,
)
from rosetta.utils import first_line

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROFILE_NAME = "rosetta-translator"
PROFILE_DESCRIPTION = "A Rosetta translation assistant"


def render_instructions(config: TranslationConfig) -> str:
    """Render the translator profile instructions for a run."""
    prompt = (
        f"You are a professional translator. Translate every message you receive "
        f"from {config.src_lang} to {config.dst_lang}. "
        f"The text is part of a document about: {config.subject}. "
        f"Use a {config.tone} tone. "
        "Messages are consecutive fragments of the same document, in order. "
        "Keep the Markdown formatting exactly as it is. "
        "Reply with the translation only, without comments or explanations."
    )
    extra = config.additional_instructions.strip()
    if extra:
        prompt += f" Additional instructions: {extra}"
    return prompt


class AssistantSession(Translator):
    """A live conversation with the translator profile.

    Args:
        endpoint: Remote endpoint handle
        profile_id: Id of the translator profile
        conversation_id: Id of the conversation owned by this session
        policy: Retry and polling settings
        sleep: Sleep used between retries
        cancel_event: Cancellation token checked while polling
    """

    def __init__(
        self,
        endpoint: Endpoint,
        profile_id: str,
        conversation_id: str,
        policy: RetryPolicy | None = None,
        sleep: Sleep = time.sleep,
        cancel_event: Optional[threading.Event] = None,
        model: str = "",
    ):
        self.endpoint = endpoint
        self.profile_id = profile_id
        self.conversation_id = conversation_id
        self.policy = policy or RetryPolicy()
        self.model = model
        self._sleep = sleep
        self._cancel_event = cancel_event or threading.Event()
        self._budget = RetryBudget(self.policy.max_sequential_errors)
        self._closed = False
        self.cleanup_thread: threading.Thread | None = None

    @property
    def name(self) -> str:
        return f"openai-{self.model}" if self.model else "assistant"

    @property
    def sequential_errors(self) -> int:
        return self._budget.sequential_errors

    def translate_section(self, section: Section) -> Section:
        return Section.from_subsections(self.translate(s) for s in section)

    def translate(self, subsection: Subsection) -> Subsection:
        """Translate one subsection as one conversation turn."""
        logger.info('Sending message "%s..."', first_line(subsection.text))
        message_id = self._request(
            lambda: self.endpoint.post_message(self.conversation_id, subsection.text),
            "Failed to send message",
        )
        logger.info("Message sent")

        logger.info("Getting translated message...")
        run = self._run_to_completion()

        messages = self._request(
            lambda: self.endpoint.list_messages_after(self.conversation_id, run.id, message_id),
            "Failed to list messages",
        )
        if len(messages) != 1:
            raise InteractionError(
                f"Incorrect number of response messages: {len(messages)}", run_id=run.id
            )
        contents = messages[0].contents
        if len(contents) != 1:
            raise InteractionError(
                f"Incorrect number of response message sections: {len(contents)}", run_id=run.id
            )
        content = contents[0]
        if content.type != "text" or content.text is None:
            raise InteractionError(f"Incorrect response type: {content.type}", run_id=run.id)

        return Subsection(content.text)

    def _request(self, fn: Callable[[], T], what: str) -> T:
        return call_with_retries(fn, what, self.policy, self._sleep)

    def _retry_or_bail(self, message: str) -> None:
        self._budget.charge(message, InteractionError)
        raise RetryableError(message)

    def _check_cancelled(self, wait: float = 0.0) -> None:
        if self._cancel_event.wait(wait) if wait > 0 else self._cancel_event.is_set():
            raise TranslationCancelled("Translation cancelled", conversation_id=self.conversation_id)

    def _run_to_completion(self) -> Run:
        """Start runs until one completes; rate limits and retryable failures restart."""
        def attempt() -> Run:
            run = self._request(
                lambda: self.endpoint.start_run(self.conversation_id, self.profile_id),
                "Failed to create run",
            )
            while not self._is_complete(run):
                self._check_cancelled(self.policy.poll_interval)
                run_id = run.id
                run = self._request(
                    lambda: self.endpoint.get_run(self.conversation_id, run_id),
                    "Failed to retrieve run",
                )
            return run

        run = retrying(self.policy, InteractionError, "Run did not complete", self._sleep)(attempt)
        self._budget.reset()
        return run

    def _is_complete(self, run: Run) -> bool:
        """Classify a polled run: True when done, False to keep polling.

        Raises RetryableError (via the budget) for failures worth another
        run and InteractionError for fatal ones.
        """
        status = run.status

        if status == RunStatus.COMPLETED:
            logger.info("Run complete")
            return True

        elif status in (RunStatus.QUEUED, RunStatus.IN_PROGRESS):
            return False

        elif status in (RunStatus.CANCELLING, RunStatus.CANCELLED):
            raise InteractionError("Run is cancelled", run_id=run.id)

        elif status == RunStatus.EXPIRED:
            raise InteractionError("Run expired", run_id=run.id)

        elif status == RunStatus.REQUIRES_ACTION:
            raise InteractionError("Run requires action, but no tools are configured", run_id=run.id)

        elif status == RunStatus.FAILED:
            if run.error_code == RunErrorCode.RATE_LIMIT_EXCEEDED:
                message = f"Hit the rate limit: {run.error_message}"
                if self.policy.count_rate_limits:
                    self._budget.charge(message, InteractionError)
                else:
                    logger.warning(message)
                raise RateLimited(message)
            if run.error_code == RunErrorCode.INVALID_PROMPT:
                raise InteractionError(f"Invalid prompt: {run.error_message}", run_id=run.id)
            if run.error_code is None:
                self._retry_or_bail("Run failed with no error")
            self._retry_or_bail(f"Server error: {run.error_message}")

        elif status == RunStatus.INCOMPLETE:
            self._retry_or_bail(f"Run is incomplete: {run.incomplete_reason}")

        raise InteractionError(f"Unexpected run status: {status}", run_id=run.id)

    def close(self) -> None:
        """Delete the conversation in the background. Never raises."""
        if self._closed:
            return
        self._closed = True
        self.cleanup_thread = threading.Thread(
            target=self._delete_conversation,
            name=f"rosetta-cleanup-{self.conversation_id}",
            daemon=True,
        )
        self.cleanup_thread.start()

    def _delete_conversation(self) -> None:
        try:
            self._request(
                lambda: self.endpoint.delete_conversation(self.conversation_id),
                "Failed to delete conversation",
            )
            logger.debug("Deleted conversation %s", self.conversation_id)
        except Exception:
            logger.exception("Failed to clean up conversation %s", self.conversation_id)


class AssistantSessionBuilder(TranslatorBuilder):
    """Sets up the translator profile and opens a session for a run.

    Args:
        endpoint: Remote endpoint handle, passed explicitly
        model: Model the profile runs on
        temperature: Sampling temperature of the profile
        top_p: Nucleus sampling of the profile
        policy: Retry and polling settings for the session
        sleep: Sleep used between retries
        cancel_event: Cancellation token handed to the session
    """

    def __init__(
        self,
        endpoint: Endpoint,
        model: str,
        temperature: float = 1.0,
        top_p: float = 1.0,
        policy: RetryPolicy | None = None,
        sleep: Sleep = time.sleep,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.endpoint = endpoint
        self.model = model
        self.temperature = temperature
        self.top_p = top_p
        self.policy = policy or RetryPolicy()
        self.sleep = sleep
        self.cancel_event = cancel_event

    def profile_spec(self, config: TranslationConfig) -> ProfileSpec:
        return ProfileSpec(
            name=PROFILE_NAME,
            description=PROFILE_DESCRIPTION,
            instructions=render_instructions(config),
            model=self.model,
            temperature=self.temperature,
            top_p=self.top_p,
        )

    def build(self, config: TranslationConfig) -> AssistantSession:
        spec = self.profile_spec(config)
        profile_id = call_with_retries(
            lambda: self.endpoint.upsert_profile(spec),
            "Failed to set up translator profile",
            self.policy,
            self.sleep,
        )
        conversation_id = call_with_retries(
            self.endpoint.create_conversation,
            "Failed to create conversation",
            self.policy,
            self.sleep,
        )
        logger.info("Opened conversation %s with profile %s", conversation_id, profile_id)
        return AssistantSession(
            self.endpoint,
            profile_id,
            conversation_id,
            policy=self.policy,
            sleep=self.sleep,
            cancel_event=self.cancel_event,
            model=self.model,
        )
