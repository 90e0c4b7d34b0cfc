from __future__ import annotations

from typing import Any

import logging

import httpx


class WhatsAppClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        phone_number_id: str,
        max_retries: int = 3,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.phone_number_id = phone_number_id
        self.max_retries = max(1, max_retries)
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(headers=self._headers(), timeout=self.timeout, transport=self.transport)

    async def ping(self) -> None:
        await self._raw_get(f"/{self.phone_number_id}")

    async def send_text(self, to: str, body: str):
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": normalize_phone(to),
            "type": "text",
            "text": {"preview_url": False, "body": body},
        }
        return await self._raw_post(f"/{self.phone_number_id}/messages", payload)

    async def _raw_get(self, path: str, params: dict[str, Any] | None = None):
        try:
            async with self._client() as client:
                resp = await client.get(f"{self.base_url}{path}", params=params)
        except httpx.TransportError as exc:
            raise RuntimeError(f"WhatsApp GET {path} failed: {exc}") from exc
        logging.info("WhatsApp GET %s -> %s", path, resp.status_code)
        return await self._handle_response(resp, "GET", path)

    async def _raw_post(self, path: str, payload: dict[str, Any]):
        last_exc: httpx.TransportError | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                async with self._client() as client:
                    resp = await client.post(f"{self.base_url}{path}", json=payload)
            except httpx.TransportError as exc:
                last_exc = exc
                logging.warning("WhatsApp POST %s attempt %s/%s failed: %s", path, attempt, self.max_retries, exc)
                continue
            logging.info("WhatsApp POST %s -> %s", path, resp.status_code)
            return await self._handle_response(resp, "POST", path)
        raise RuntimeError(f"WhatsApp POST {path} failed after {self.max_retries} attempts: {last_exc}")

    async def _handle_response(self, resp: httpx.Response, method: str, path: str):
        if resp.status_code >= 400:
            try:
                payload = resp.json()
            except ValueError:
                payload = resp.text
            raise RuntimeError(f"WhatsApp {method} {path} failed: {resp.status_code} {payload}")
        try:
            return resp.json()
        except ValueError:
            return {}


def normalize_phone(value: str) -> str:
    return "".join(ch for ch in (value or "") if ch.isdigit())


def create_whatsapp_client(settings) -> WhatsAppClient | None:
    if not settings.whatsapp_enabled:
        return None
    return WhatsAppClient(
        settings.whatsapp_api_url,
        settings.whatsapp_token,
        settings.whatsapp_phone_number_id,
        max_retries=settings.whatsapp_max_retries,
        timeout=settings.whatsapp_timeout_seconds,
    )
