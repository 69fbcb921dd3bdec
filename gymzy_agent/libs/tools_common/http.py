from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests


@dataclass
class HttpClient:
    """JSON-over-HTTP client for the Gymzy domain services."""
    base_url: str
    api_key: Optional[str] = None
    bearer_token: Optional[str] = None
    timeout_seconds: int = 10

    def _headers(self, user_id: Optional[str] = None, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"
        if user_id:
            headers["X-User-Id"] = user_id
        if extra:
            headers.update(extra)
        return headers

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        user_id: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        resp = requests.get(
            self._url(path),
            params={k: v for k, v in (params or {}).items() if v is not None},
            headers=self._headers(user_id, headers),
            timeout=self.timeout_seconds,
        )
        return self._handle_response(resp)

    def post(
        self,
        path: str,
        json_body: Optional[Dict[str, Any]] = None,
        *,
        user_id: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        resp = requests.post(
            self._url(path),
            json=json_body or {},
            headers=self._headers(user_id, headers),
            timeout=self.timeout_seconds,
        )
        return self._handle_response(resp)

    @staticmethod
    def _handle_response(resp: requests.Response) -> Dict[str, Any]:
        text = resp.text
        try:
            data = resp.json()
        except ValueError:
            # Streaming endpoints answer with ndjson; the last line is the result
            lines = [line for line in text.strip().split("\n") if line.strip()]
            try:
                data = json.loads(lines[-1]) if lines else {}
            except ValueError:
                data = {"raw": text}

        if resp.status_code >= 400:
            err = data.get("error") if isinstance(data, dict) else None
            if isinstance(err, dict):
                message = err.get("message") or f"HTTP {resp.status_code}"
            else:
                message = err or text or f"HTTP {resp.status_code}"
            raise requests.HTTPError(message, response=resp)
        return data if isinstance(data, dict) else {"data": data}
