"""The webhook pipeline, independent of the HTTP layer.

intake -> trigger detection -> (early exit) -> question extraction ->
context read -> completion -> context write -> notification
"""

import logging

from omi_relay.completion_client import CompletionClient
from omi_relay.context_store import ConversationContextStore, ConversationTurn
from omi_relay.memory_store import MemoryStore
from omi_relay.models import WebhookPayload
from omi_relay.notifier import NotificationDispatcher
from omi_relay.question_extractor import ExtractionPolicy, QuestionExtractor
from omi_relay.rate_limiter import RateLimiter
from omi_relay.trigger_detector import TriggerDetector

logger = logging.getLogger(__name__)

HELP_MESSAGE = (
    "Say \"Hey Omi\" followed by your question, for example \"Hey Omi, what's the weather in Paris?\". "
    "Say \"save to memory\" or \"remember this\" to store something, "
    "and \"search memory\" or \"what do you remember about\" to find it again."
)


def help_guide(detector: TriggerDetector) -> dict:
    return {
        "title": "Omi AI Chat Plugin",
        "message": HELP_MESSAGE,
        "wake_phrases": detector.wake_phrases,
        "help_keywords": detector.help_keywords,
        "examples": [
            "Hey Omi, what's 2+2?",
            "Hey Omi, what is the capital of France?",
            "Hey Omi, save to memory my dog's name is Max",
            "Hey Omi, what do you remember about my dog",
        ],
        "memory_commands": {
            "save": detector.memory_save_phrases,
            "search": detector.memory_search_phrases,
        },
        "notes": [
            "The wake phrase must start a sentence or follow a space; \"hey omicron\" does not trigger.",
            "Follow-up questions in the same session see the last few questions and answers.",
        ],
    }


def format_memory_results(query: str, results: list[dict]) -> str:
    if not results:
        return f"I couldn't find any memories about {query}."
    lines = [f"I found {len(results)} {'memory' if len(results) == 1 else 'memories'} about {query}:"]
    for i, r in enumerate(results, 1):
        lines.append(f"{i}. {r['content']}")
    return "\n".join(lines)


class Relay:
    def __init__(self, detector: TriggerDetector, extractor: QuestionExtractor,
                 context_store: ConversationContextStore, completion: CompletionClient,
                 notifier: NotificationDispatcher, memory_store: MemoryStore | None = None,
                 rate_limiter: RateLimiter | None = None, memory_search_limit: int = 5):
        self.detector = detector
        self.extractor = extractor
        self.context_store = context_store
        self.completion = completion
        self.notifier = notifier
        self.memory_store = memory_store
        self.rate_limiter = rate_limiter
        self.memory_search_limit = memory_search_limit

    @classmethod
    def from_config(cls, config: dict, **overrides) -> "Relay":
        """Wire the default collaborators from ``config``; keyword overrides win."""
        detector = overrides.pop("detector", None) or TriggerDetector.from_config(config)
        if "memory_store" not in overrides:
            overrides["memory_store"] = (
                MemoryStore.from_config(config) if config.get("memory", {}).get("enabled") else None
            )
        parts = {
            "detector": detector,
            "extractor": QuestionExtractor(
                detector, ExtractionPolicy(config.get("triggers", {}).get("extraction", "segment"))
            ),
            "context_store": ConversationContextStore.from_config(config),
            "completion": CompletionClient(config),
            "notifier": NotificationDispatcher.from_config(config),
            "rate_limiter": RateLimiter.from_config(config),
            "memory_search_limit": config.get("memory", {}).get("search_limit", 5),
        }
        parts.update(overrides)
        return cls(**parts)

    async def handle(self, payload: WebhookPayload) -> dict:
        """Process one webhook delivery and return the response envelope."""
        session_id = payload.session_id
        transcript = payload.transcript
        logger.info(f"[WEBHOOK] session={session_id} transcript: {transcript[:200]}")

        trigger = self.detector.detect(transcript)
        # Memory commands only count when a store is configured
        memory_command = trigger.memory_command if self.memory_store is not None else None
        if not (trigger.has_wake_phrase or trigger.has_help_intent or memory_command):
            logger.info("[WEBHOOK] No wake phrase, ignored")
            return {
                "outcome": "ignored",
                "message": "Transcript ignored - does not contain the wake phrase",
                "session_id": session_id,
            }

        if memory_command:
            return await self._handle_memory(session_id, memory_command, trigger.memory_text)

        if trigger.has_help_intent and not trigger.has_wake_phrase:
            logger.info("[WEBHOOK] Help requested")
            return {
                "outcome": "help",
                "message": HELP_MESSAGE,
                "help": help_guide(self.detector),
                "session_id": session_id,
            }

        question = self.extractor.extract(payload.segments)
        if not question:
            logger.info("[WEBHOOK] Wake phrase without a question, ignored")
            return {
                "outcome": "ignored_no_question",
                "message": "Transcript ignored - no question provided",
                "session_id": session_id,
            }

        if self.rate_limiter is not None:
            self.rate_limiter.check(session_id)

        logger.info(f"[WEBHOOK] Question: {question}")
        async with self.context_store.session(session_id):
            context = self.context_store.get_unlocked(session_id)
            answer = await self.completion.complete(question, context)
            self.context_store.append_unlocked(session_id, ConversationTurn(question=question, answer=answer))

        omi_status = await self.notifier.send(session_id, answer)
        return {
            "outcome": "answered",
            "success": True,
            "message": "Question processed and response sent to Omi",
            "question": question,
            "ai_response": answer,
            "omi_status": omi_status,
            "session_id": session_id,
            "conversation_context": len(context) + 1,
        }

    async def _handle_memory(self, session_id: str, command: str, text: str) -> dict:
        if not text:
            return {
                "outcome": "ignored_no_question",
                "message": f"Transcript ignored - nothing to {command}",
                "session_id": session_id,
            }

        if self.rate_limiter is not None:
            self.rate_limiter.check(session_id)

        if command == "save":
            mid = await self.memory_store.save(session_id, text)
            omi_status = await self.notifier.send(session_id, f"Saved to memory: {text}")
            return {
                "outcome": "memory_saved",
                "success": True,
                "message": "Memory saved",
                "memory_id": mid,
                "content": text,
                "omi_status": omi_status,
                "session_id": session_id,
            }

        results = await self.memory_store.search(session_id, text, limit=self.memory_search_limit)
        reply = format_memory_results(text, results)
        omi_status = await self.notifier.send(session_id, reply)
        return {
            "outcome": "memory_results",
            "success": True,
            "message": reply,
            "query": text,
            "results_count": len(results),
            "results": results,
            "omi_status": omi_status,
            "session_id": session_id,
        }

    async def close(self):
        await self.completion.close()
        await self.notifier.close()
