from __future__ import annotations

import hashlib
import hmac
import logging
import os
import random
from typing import Any, Mapping

import httpx

log = logging.getLogger(__name__)

TABLE = "rec_events"


class RecTelemetry:
    """
    Best-effort event sink for the recommendation engine, written to Supabase
    REST (one row per event in rec_events). Implements the EventEmitter port.

    - sampled: `sample` in [0, 1] of events are written
    - user ids are HMAC-hashed before leaving the process
    - failures are logged, never raised
    """

    def __init__(
        self,
        supabase_url: str,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        *,
        sample: float = 1.0,
        timeout_s: float = 5.0,
        hash_secret: str | None = None,
    ):
        self.supabase_url = (supabase_url or "").rstrip("/")
        self.api_key = api_key or ""
        self.client = client
        self.sample = float(max(0.0, min(1.0, sample)))
        self.timeout_s = timeout_s
        self.hash_secret = hash_secret or os.getenv("REC_HASH_SECRET") or self.api_key or "dev"

    def _enabled(self) -> bool:
        return bool(self.supabase_url and self.api_key and self.sample > 0)

    def _sampled(self) -> bool:
        return self.sample >= 1.0 or random.random() < self.sample

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=minimal",
        }

    @staticmethod
    def hmac_hash(value: str, secret: str) -> str:
        return hmac.new(
            secret.encode("utf-8"), value.encode("utf-8"), hashlib.sha256
        ).hexdigest()

    def _row(self, name: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        data = dict(payload)
        user_id = data.pop("user_id", None)
        return {
            "event": name,
            "hashed_user_id": self.hmac_hash(str(user_id), self.hash_secret)
            if user_id
            else None,
            "payload": data,
        }

    async def _post(self, client: httpx.AsyncClient, rows: list[dict[str, Any]]) -> None:
        try:
            r = await client.post(
                f"{self.supabase_url}/rest/v1/{TABLE}",
                headers=self._headers(),
                json=rows,
                timeout=self.timeout_s,
            )
            if r.status_code not in (200, 201, 204):
                log.warning("rec telemetry POST failed %s: %s", r.status_code, r.text[:300])
        except httpx.HTTPError as e:
            log.warning("rec telemetry POST error: %s", e)

    async def emit(self, name: str, payload: Mapping[str, Any]) -> None:
        if not self._enabled() or not self._sampled():
            return
        rows = [self._row(name, payload)]
        if self.client is not None:
            await self._post(self.client, rows)
            return
        async with httpx.AsyncClient() as client:
            await self._post(client, rows)
