# services/api_client.py - shared plumbing for the JSON score / certificate endpoints
from typing import Any, Dict, Optional

import requests


class ApiError(Exception):
    """Network failure, non-2xx reply or unparsable body from a JSON endpoint."""


class JsonApiClient:
    def __init__(self, url: str, timeout: Optional[float] = None, token: str = ""):
        self.url = url
        self.timeout = timeout if timeout is not None else 5
        self.token = token

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get_json(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            resp = requests.get(self.url, params=params, headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise ApiError(f"GET {self.url} failed: {e}") from e
        except ValueError as e:
            raise ApiError(f"GET {self.url} returned invalid JSON") from e

    def post_json(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = requests.post(self.url, json=payload, headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ApiError(f"POST {self.url} failed: {e}") from e
        # Some endpoints reply 2xx with an empty body
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(f"POST {self.url} returned invalid JSON") from e
