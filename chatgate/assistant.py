import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import UpstreamError


logger = logging.getLogger("assistant")

_PENDING_RUN_STATUSES = {"queued", "in_progress", "cancelling"}


@dataclass(frozen=True)
class RunResult:
    status: str
    reply_text: str = ""


class AssistantClient:
    """Thin client for the OpenAI Assistants (v2) REST API.

    Conversation sessions are assistant threads. Instructions live on the
    assistant itself and are managed in the OpenAI dashboard, never here.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        assistant_id: str | None = None,
        model: str = "gpt-4o-mini",
        name: str = "All-Star Talent Recruiting Assistant",
        timeout_s: float = 20.0,
        poll_interval_s: float = 0.5,
        max_wait_s: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.assistant_id = assistant_id
        self.model = model
        self.name = name
        self.timeout_s = timeout_s
        self.poll_interval_s = poll_interval_s
        self.max_wait_s = max_wait_s
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "OpenAI-Beta": "assistants=v2",
        }

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = await client.request(method, url, headers=self._headers(), json=payload, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Assistant HTTP error %s on %s: %s", exc.response.status_code, path, exc.response.text)
            raise UpstreamError(detail=f"HTTP {exc.response.status_code} on {path}") from exc
        except httpx.RequestError as exc:
            logger.error("Assistant request error on %s: %s", path, exc)
            raise UpstreamError(detail=str(exc)) from exc

    async def get_or_create_assistant_id(self) -> str:
        if self.assistant_id:
            return self.assistant_id
        logger.warning("No ASSISTANT_ID configured, creating a new assistant")
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
            data = await self._request(
                client,
                "POST",
                "/assistants",
                {"name": self.name, "model": self.model, "tools": [{"type": "file_search"}]},
            )
        self.assistant_id = str(data["id"])
        logger.warning("Created assistant %s; set ASSISTANT_ID=%s to reuse it", self.assistant_id, self.assistant_id)
        return self.assistant_id

    async def create_session(self) -> str:
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
            data = await self._request(client, "POST", "/threads", {})
        return str(data["id"])

    async def post_user_turn(self, thread_id: str, text: str) -> None:
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
            await self._request(client, "POST", f"/threads/{thread_id}/messages", {"role": "user", "content": text})

    async def run_to_completion(self, thread_id: str, assistant_id: str) -> RunResult:
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
            run = await self._request(client, "POST", f"/threads/{thread_id}/runs", {"assistant_id": assistant_id})
            run_id = run["id"]
            status = str(run.get("status", ""))
            deadline = time.monotonic() + self.max_wait_s
            while status in _PENDING_RUN_STATUSES:
                if time.monotonic() >= deadline:
                    logger.error("Run %s still %s after %.0fs", run_id, status, self.max_wait_s)
                    return RunResult(status="timed_out")
                await asyncio.sleep(self.poll_interval_s)
                run = await self._request(client, "GET", f"/threads/{thread_id}/runs/{run_id}")
                status = str(run.get("status", ""))

            if status != "completed":
                return RunResult(status=status)

            messages = await self._request(
                client,
                "GET",
                f"/threads/{thread_id}/messages",
                params={"limit": 1, "order": "desc"},
            )
        return RunResult(status=status, reply_text=_first_text(messages))


def _first_text(messages: dict[str, Any]) -> str:
    try:
        latest = messages["data"][0]
        for part in latest["content"]:
            if part.get("type") == "text":
                return str(part["text"]["value"])
    except (KeyError, IndexError, TypeError):
        pass
    raise UpstreamError(detail="run completed without a text reply")
