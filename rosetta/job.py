"""
Background translation job.

Runs one TranslationPipeline on a worker thread and reports through a
status queue, so a CLI or GUI can stay responsive:

    job = TranslationJob(pipeline, Path("in.docx"), Path("out.docx"), config)
    job.start()
    while True:
        status = job.statuses.get()
        ...  # Started, InProgress(progress)..., then Succeeded or Failed

Exactly one of Succeeded / Failed is always the last status, even if the
pipeline crashes with an unexpected exception.
"""

from __future__ import annotations

import logging
import queue
import threading
from pathlib import Path
from typing import Optional

from rosetta.models import (
    Failed,
    InProgress,
    Progress,
    Started,
    Succeeded,
    TranslationConfig,
    TranslationStatus,
)
from rosetta.pipeline import PipelineResult, TranslationPipeline

logger = logging.getLogger(__name__)


class TranslationJob:
    """A pipeline run on a daemon worker thread.

    The job takes over the pipeline's progress callback and cancel event.
    """

    def __init__(
        self,
        pipeline: TranslationPipeline,
        input_path: Path,
        output_path: Path,
        config: TranslationConfig | None = None,
    ):
        self.pipeline = pipeline
        self.input_path = Path(input_path)
        self.output_path = Path(output_path)
        self.config = config or TranslationConfig()
        self.statuses: queue.Queue[TranslationStatus] = queue.Queue()
        self.result: Optional[PipelineResult] = None
        self._thread: Optional[threading.Thread] = None

        self.pipeline.progress_callback = self._on_progress

    @property
    def cancel_event(self) -> threading.Event:
        return self.pipeline.cancel_event

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("Translation job already started")
        self._thread = threading.Thread(
            target=self._run, name="rosetta-translation", daemon=True
        )
        self._thread.start()

    def cancel(self) -> None:
        """Ask the pipeline to stop at the next section or poll."""
        self.cancel_event.set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the worker; True once it has finished."""
        if self._thread is None:
            return False
        self._thread.join(timeout)
        return not self._thread.is_alive()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _on_progress(self, progress: Progress) -> None:
        self.statuses.put(InProgress(progress))

    def _run(self) -> None:
        self.statuses.put(Started())
        try:
            self.result = self.pipeline.run(self.input_path, self.output_path, self.config)
        except Exception as e:
            logger.error("Translation failed: %s", e, exc_info=logger.isEnabledFor(logging.DEBUG))
            self.statuses.put(Failed(e))
        else:
            self.statuses.put(Succeeded())
