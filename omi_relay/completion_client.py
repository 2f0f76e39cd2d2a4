"""LLM completion client (OpenAI chat completions, optional assistant mode)."""

import asyncio
import logging

import openai
from openai import AsyncOpenAI

from omi_relay.assistant_run import AssistantRun, AssistantRunError, BackoffPolicy
from omi_relay.context_store import ConversationTurn, render
from omi_relay.errors import ConfigurationError, NetworkError, UpstreamError
from omi_relay.web_search import WebSearch

logger = logging.getLogger(__name__)


def make_openai_client(config: dict) -> AsyncOpenAI:
    """Create an ``AsyncOpenAI`` client, or raise if no key is configured."""
    oc = config.get("openai", {})
    api_key = oc.get("api_key")
    if not api_key:
        raise ConfigurationError("OPENAI_KEY")
    return AsyncOpenAI(api_key=api_key, timeout=oc.get("timeout", 30.0))


def openai_error(e: openai.OpenAIError) -> Exception:
    """Translate an OpenAI SDK exception into the relay's error taxonomy."""
    if isinstance(e, openai.APIStatusError):
        return UpstreamError("openai", e.status_code, e.body if e.body is not None else e.message)
    if isinstance(e, openai.APIConnectionError):
        return NetworkError("openai", str(e))
    return UpstreamError("openai", None, str(e))


def build_prompt(question: str, context: list[ConversationTurn] | None = None) -> str:
    """User message for the model: prior turns (if any) then the new question."""
    if not context:
        return question
    return f"Previous conversation:\n{render(context)}\n\nCurrent question: {question}"


class CompletionClient:
    """Answers a question, optionally with prior turns as context.

    With ``openai.assistant_id`` configured, the question goes through an
    assistant run first (which may call ``web_search``); any failure there
    falls back to a single chat completion.
    """

    def __init__(self, config: dict, client: AsyncOpenAI | None = None,
                 web_search: WebSearch | None = None, sleep=asyncio.sleep):
        self.config = config
        oc = config.get("openai", {})
        self.model = oc.get("model", "gpt-4")
        self.max_tokens = oc.get("max_tokens", 500)
        self.temperature = oc.get("temperature", 0.7)
        self.system_prompt = oc.get("system_prompt", "")
        self.assistant_id = oc.get("assistant_id")
        self.web_search = web_search or WebSearch.from_config(config)
        self.backoff = BackoffPolicy.from_config(config)
        self._sleep = sleep
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = make_openai_client(self.config)
        return self._client

    async def complete(self, question: str, context: list[ConversationTurn] | None = None) -> str:
        prompt = build_prompt(question, context)

        if self.assistant_id:
            run = AssistantRun(self.client, self.assistant_id, web_search=self.web_search,
                               backoff=self.backoff, sleep=self._sleep)
            try:
                answer = await run.ask(prompt)
                logger.info(f"[ASSISTANT] Answered after {run.polls} polls")
                return answer
            except AssistantRunError as e:
                logger.warning(f"[ASSISTANT] Run failed ({e}), falling back to chat completion")

        return await self._chat(prompt)

    async def _chat(self, prompt: str) -> str:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except openai.OpenAIError as e:
            logger.error(f"[OPENAI] Completion failed: {e}")
            raise openai_error(e) from e
        answer = (resp.choices[0].message.content or "").strip()
        logger.info(f"[OPENAI] Response: {answer[:200]}")
        return answer

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None
