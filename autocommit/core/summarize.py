"""
Summary Layer - Turn a diff into a commit message.

Without a credential the message is the local timestamp. With one, the diff
is cut into fixed-size chunks, at most ``max_chunks`` of them are sent to the
summarization service one request each, and the replies are joined in order.
"""

from __future__ import annotations

import logging
from typing import Protocol

from .config import Settings
from .errors import SummarizationFailure
from .util import chunk_text, now_local


log = logging.getLogger(__name__)

PLACEHOLDER = "Could not generate commit message"
SEPARATOR = "\n"

SYSTEM_PROMPT = (
    "You are CommitBot, an assistant tasked with writing helpful commit messages "
    "based on code changes. You will be given a set of patches of code changes, "
    "and you must write a short commit message describing the changes. Do not be "
    "verbose. Your response must include only high level logical changes if the "
    "diff is large, otherwise you may include specific changes. Try to fit your "
    "response in one line."
)


class Summarizer(Protocol):
    def summarize(self, instructions: str, text: str) -> str | None:
        ...


class OpenAISummarizer:
    """One-shot chat completion against the OpenAI API."""

    def __init__(self, api_key: str, model: str):
        # Imported lazily so the timestamp fallback never loads the SDK
        from openai import OpenAI

        self._client = OpenAI(api_key=api_key)
        self._model = model

    def summarize(self, instructions: str, text: str) -> str | None:
        import openai

        try:
            resp = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": instructions},
                    {"role": "user", "content": text},
                ],
            )
        except openai.OpenAIError as exc:
            raise SummarizationFailure(f"Summarization request failed: {exc}") from exc
        if not resp.choices:
            return None
        return resp.choices[0].message.content


class CommitMessageSynthesizer:
    def __init__(self, settings: Settings, summarizer: Summarizer | None = None):
        self.settings = settings
        self._summarizer = summarizer

    @property
    def summarizer(self) -> Summarizer:
        if self._summarizer is None:
            self._summarizer = OpenAISummarizer(self.settings.api_key, self.settings.model)
        return self._summarizer

    def synthesize(self, diff_text: str) -> str:
        if not self.settings.has_credential:
            return now_local()

        chunks = chunk_text(diff_text, self.settings.chunk_size)
        if len(chunks) > self.settings.max_chunks:
            log.info(
                "Diff split into %d chunks, summarizing the first %d.",
                len(chunks),
                self.settings.max_chunks,
            )
            chunks = chunks[: self.settings.max_chunks]

        parts = [self._summarize_chunk(i, chunk) for i, chunk in enumerate(chunks)]
        message = SEPARATOR.join(parts)
        return message or PLACEHOLDER

    def _summarize_chunk(self, index: int, chunk: str) -> str:
        try:
            content = self.summarizer.summarize(SYSTEM_PROMPT, chunk)
        except SummarizationFailure:
            if self.settings.chunk_failure == "abort":
                raise
            log.warning("Summarizing chunk %d failed, using placeholder.", index)
            return PLACEHOLDER
        content = (content or "").strip()
        if not content:
            log.warning("Empty summary for chunk %d, using placeholder.", index)
            return PLACEHOLDER
        return content
