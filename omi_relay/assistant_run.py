"""Assistant-mode completion: a thread/run round-trip with tool calls.

A run moves through explicit states:

    SUBMITTED -> AWAITING_MODEL <-> AWAITING_TOOL_RESULT
                       |
                       +-> COMPLETED | FAILED

Polling while the model works follows a bounded ``BackoffPolicy``. The sleep
function is injected so tests drive the machine without real timers.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum

from omi_relay.web_search import WebSearch

logger = logging.getLogger(__name__)

PENDING_STATUSES = ("queued", "in_progress")


class RunState(str, Enum):
    SUBMITTED = "submitted"
    AWAITING_MODEL = "awaiting_model"
    AWAITING_TOOL_RESULT = "awaiting_tool_result"
    COMPLETED = "completed"
    FAILED = "failed"


class AssistantRunError(Exception):
    pass


@dataclass
class BackoffPolicy:
    """Exponential poll delays, capped, with a hard limit on total polls."""

    max_polls: int = 20
    initial_delay: float = 0.5
    max_delay: float = 4.0
    multiplier: float = 2.0

    @classmethod
    def from_config(cls, config: dict) -> "BackoffPolicy":
        a = config.get("assistant", {})
        return cls(
            max_polls=a.get("max_polls", 20),
            initial_delay=a.get("initial_delay", 0.5),
            max_delay=a.get("max_delay", 4.0),
            multiplier=a.get("multiplier", 2.0),
        )

    def delay(self, attempt: int) -> float:
        return min(self.initial_delay * (self.multiplier ** attempt), self.max_delay)


class AssistantRun:
    """One question answered through the assistants thread/run API.

    Args:
        client: ``openai.AsyncOpenAI`` (or a stand-in with the same shape).
        assistant_id: Assistant configured with the ``web_search`` function.
        web_search: Executes ``web_search`` tool calls.
        backoff: Poll schedule.
        sleep: Awaitable sleep, ``asyncio.sleep`` by default.
    """

    def __init__(self, client, assistant_id: str, web_search: WebSearch | None = None,
                 backoff: BackoffPolicy | None = None, sleep=asyncio.sleep):
        self.client = client
        self.assistant_id = assistant_id
        self.web_search = web_search or WebSearch()
        self.backoff = backoff or BackoffPolicy()
        self._sleep = sleep
        self.state = RunState.SUBMITTED
        self.history: list[RunState] = [RunState.SUBMITTED]
        self.polls = 0

    def _transition(self, state: RunState):
        logger.debug(f"[ASSISTANT] {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    async def ask(self, question: str) -> str:
        """Run the question to completion and return the assistant's reply.

        Raises:
            AssistantRunError: on API failure, a terminal non-completed run
                status, or when the poll budget is exhausted.
        """
        try:
            return await self._drive(question)
        except AssistantRunError:
            self._transition(RunState.FAILED)
            raise
        except Exception as e:
            self._transition(RunState.FAILED)
            raise AssistantRunError(str(e)) from e

    async def _drive(self, question: str) -> str:
        threads = self.client.beta.threads
        thread = await threads.create()
        await threads.messages.create(thread_id=thread.id, role="user", content=question)
        run = await threads.runs.create(thread_id=thread.id, assistant_id=self.assistant_id)
        self._transition(RunState.AWAITING_MODEL)

        attempt = 0
        while True:
            status = run.status
            if status in PENDING_STATUSES:
                if self.polls >= self.backoff.max_polls:
                    raise AssistantRunError(f"run {run.id} still {status} after {self.polls} polls")
                await self._sleep(self.backoff.delay(attempt))
                attempt += 1
                self.polls += 1
                run = await threads.runs.retrieve(run_id=run.id, thread_id=thread.id)
            elif status == "requires_action":
                self._transition(RunState.AWAITING_TOOL_RESULT)
                outputs = await self._run_tools(run)
                run = await threads.runs.submit_tool_outputs(
                    run_id=run.id, thread_id=thread.id, tool_outputs=outputs,
                )
                self._transition(RunState.AWAITING_MODEL)
                attempt = 0
            elif status == "completed":
                answer = await self._latest_answer(thread.id)
                self._transition(RunState.COMPLETED)
                return answer
            else:
                raise AssistantRunError(f"run {run.id} ended with status {status}")

    async def _run_tools(self, run) -> list[dict]:
        outputs = []
        for call in run.required_action.submit_tool_outputs.tool_calls:
            name = call.function.name
            if name == "web_search":
                args = json.loads(call.function.arguments or "{}")
                query = args.get("query", "")
                logger.info(f"[ASSISTANT] web_search: {query[:100]}")
                output = await self.web_search.search(query)
            else:
                output = f"Unknown function: {name}"
            outputs.append({"tool_call_id": call.id, "output": output})
        return outputs

    async def _latest_answer(self, thread_id: str) -> str:
        page = await self.client.beta.threads.messages.list(thread_id=thread_id, order="desc", limit=10)
        for message in page.data:
            if message.role != "assistant":
                continue
            parts = [block.text.value for block in message.content if block.type == "text"]
            text = "\n".join(parts).strip()
            if text:
                return text
        raise AssistantRunError("run completed without an assistant message")
