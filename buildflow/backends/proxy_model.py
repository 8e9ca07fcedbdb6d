# buildflow/backends/proxy_model.py
"""
Model backend that talks to a generation proxy over HTTP.

The proxy receives ``{history, fileSystem, tools, system, model, stream}`` and
answers with raw text in the line-delimited event protocol (streamed or whole).
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import httpx

from buildfs import FileSnapshot

from ..core.collaborators import IModelBackend
from ..core.exceptions import ModelAuthError, ModelBackendError, ModelUnavailableError
from ..core.models import HistoryEntry

logger = logging.getLogger(__name__)


class ProxyModelBackend(IModelBackend):
    def __init__(
        self,
        endpoint: str,
        token: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint
        self.token = token
        self.model = model
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self.client.aclose()

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            raise ModelAuthError("No model credential configured.")
        return {"Authorization": f"Bearer {self.token}", "Content-Type": "application/json"}

    def _payload(self, history: Sequence[HistoryEntry], snapshot: FileSnapshot,
                 tools: Optional[List[Dict[str, Any]]], system: Optional[str],
                 model: Optional[str], stream: bool) -> Dict[str, Any]:
        payload = {
            "history": [entry.to_dict() for entry in history],
            "fileSystem": snapshot.to_wire_dict(),
            "tools": tools or [],
            "stream": stream,
        }
        if system:
            payload["system"] = system
        if model or self.model:
            payload["model"] = model or self.model
        return payload

    @staticmethod
    def _check_status(status_code: int, body: str) -> None:
        if status_code in (401, 403):
            raise ModelAuthError(f"Model endpoint rejected the credential (status={status_code}).")
        if status_code >= 500 or status_code == 429:
            raise ModelUnavailableError(f"Model endpoint unavailable (status={status_code}).")
        if status_code >= 400:
            max_log_length = 1024
            logger.error("Model endpoint error: %s - %s", status_code, body[:max_log_length])
            raise ModelBackendError(f"Model endpoint error (status={status_code}).")

    async def stream(self, history: Sequence[HistoryEntry], snapshot: FileSnapshot,
                     tools: List[Dict[str, Any]], system: Optional[str] = None) -> AsyncIterator[str]:
        payload = self._payload(history, snapshot, tools, system, None, stream=True)
        headers = self._headers()
        logger.info("Model request | endpoint=%s stream=True entries=%d files=%d",
                    self.endpoint, len(payload["history"]), len(payload["fileSystem"]))
        try:
            async with self.client.stream("POST", self.endpoint, headers=headers, json=payload) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode(errors="replace")
                    self._check_status(response.status_code, body)
                async for chunk in response.aiter_text():
                    if chunk:
                        yield chunk
        except httpx.TimeoutException as e:
            raise ModelUnavailableError(f"Model request timed out: {e}") from e
        except httpx.TransportError as e:
            raise ModelUnavailableError(f"Could not reach the model endpoint: {e}") from e

    async def complete(self, history: Sequence[HistoryEntry], snapshot: FileSnapshot,
                       tools: Optional[List[Dict[str, Any]]] = None,
                       model: Optional[str] = None, system: Optional[str] = None) -> str:
        payload = self._payload(history, snapshot, tools, system, model, stream=False)
        headers = self._headers()
        try:
            response = await self.client.post(self.endpoint, headers=headers, json=payload)
        except httpx.TimeoutException as e:
            raise ModelUnavailableError(f"Model request timed out: {e}") from e
        except httpx.TransportError as e:
            raise ModelUnavailableError(f"Could not reach the model endpoint: {e}") from e

        self._check_status(response.status_code, response.text)
        if response.headers.get("content-type", "").startswith("application/json"):
            try:
                data = response.json()
            except json.JSONDecodeError:
                return response.text
            if isinstance(data, dict) and isinstance(data.get("text"), str):
                return data["text"]
            return json.dumps(data)
        return response.text
