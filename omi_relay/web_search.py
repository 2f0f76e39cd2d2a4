"""Web search tool backing the assistant's ``web_search`` function call."""

import logging

import httpx

logger = logging.getLogger(__name__)

DUCKDUCKGO_ENDPOINT = "https://api.duckduckgo.com/"
NO_RESULT = "No short answer found."
UNREACHABLE = "Search service unreachable."

# Function schema registered on the assistant
WEB_SEARCH_TOOL = {
    "type": "function",
    "function": {
        "name": "web_search",
        "description": "Search the web for current information such as news, weather or times.",
        "parameters": {
            "type": "object",
            "properties": {"query": {"type": "string", "description": "Search query"}},
            "required": ["query"],
        },
    },
}


class WebSearch:
    """DuckDuckGo instant-answer lookup. Never raises; failures become text."""

    def __init__(self, endpoint: str = DUCKDUCKGO_ENDPOINT, timeout: float = 5.0,
                 transport: httpx.AsyncBaseTransport | None = None):
        self.endpoint = endpoint
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: dict) -> "WebSearch":
        ws = config.get("web_search", {})
        return cls(endpoint=ws.get("endpoint", DUCKDUCKGO_ENDPOINT), timeout=ws.get("timeout", 5.0))

    async def search(self, query: str) -> str:
        query = (query or "").strip()
        if not query:
            return NO_RESULT
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(
                    self.endpoint,
                    params={"q": query, "format": "json", "no_redirect": "1", "no_html": "1"},
                )
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"[SEARCH] Failed for {query!r}: {e}")
            return UNREACHABLE

        for key in ("Answer", "AbstractText", "Definition"):
            if val := data.get(key):
                return val
        related = data.get("RelatedTopics") or []
        if isinstance(related, list) and related:
            first = related[0]
            if isinstance(first, dict) and first.get("Text"):
                return first["Text"]
        return NO_RESULT
