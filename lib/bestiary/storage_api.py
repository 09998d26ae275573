# bestiary/storage_api.py
from __future__ import annotations
import json
import logging
import re
from typing import Optional, Any

import requests
from requests import Response

from bestiary.config import get_storage_api_key
from bestiary.exceptions import StorageError
from bestiary.templates import Lookups

logger = logging.getLogger(__name__)


def record_key(name: str, source: str = "") -> str:
    """Convert a creature or template reference to its storage key.

    ('Ancient Red Dragon', 'MM') → 'ancient_red_dragon_mm.json'
    ('Goblin', '') → 'goblin.json'
    """
    parts = [name.strip().lower()]
    if source and source.strip():
        parts.append(source.strip().lower())
    key = "_".join(re.sub(r'\s+', '_', p) for p in parts)
    # Remove non-alphanumeric except underscores
    key = re.sub(r'[^a-z0-9_]', '', key)
    return f"{key}.json"


class StorageAPI:
    """
    Read-only client for the remote record store.

    Endpoints:
      - GET  {base}/v1/bestiary/{key}    -> creature JSON (raw or {"data": ...})
      - GET  {base}/v1/templates/{key}   -> template JSON (raw or {"data": ...})
    """

    def __init__(self, base_url: str, session: Optional[requests.Session] = None, api_key: Optional[str] = None):
        if not base_url:
            raise ValueError("StorageAPI base_url is required")
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.api_key = (api_key if api_key is not None else get_storage_api_key()).strip()

        # attach API key for every request made by this Session
        if self.api_key:
            self.session.headers.update({"X-Api-Key": self.api_key})

    # ----- URL helpers -----

    def _bestiary_url(self, key: str) -> str:
        return f"{self.base_url}/v1/bestiary/{key}"

    def _template_url(self, key: str) -> str:
        return f"{self.base_url}/v1/templates/{key}"

    # ----- Response helpers -----

    @staticmethod
    def _unwrap_data(maybe_wrapped: Any) -> Any:
        """
        Accept either {"data": ...} or raw payload. Return the inner object.
        """
        if isinstance(maybe_wrapped, dict) and "data" in maybe_wrapped:
            return maybe_wrapped["data"]
        return maybe_wrapped

    def _get(self, url: str) -> Optional[dict]:
        """
        GET a JSON object. Returns dict or None if 404.
        """
        try:
            r: Response = self.session.get(url, timeout=8)
        except requests.RequestException as e:
            raise StorageError(f"GET {url} failed: {e}") from e

        if r.status_code == 404:
            return None
        try:
            r.raise_for_status()
            payload = self._unwrap_data(r.json())
        except requests.RequestException as e:
            raise StorageError(f"GET {url} failed: {e}", status_code=r.status_code) from e
        except ValueError as e:
            raise StorageError(f"GET {url} returned invalid JSON: {e}", status_code=r.status_code) from e

        # Some servers store JSON as a string; try to parse.
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError:
                pass
        if isinstance(payload, dict):
            return payload
        raise StorageError(f"GET {url} returned {type(payload).__name__}, expected an object")

    # ----- Core ops -----

    def get_creature(self, name: str, source: str = "") -> Optional[dict]:
        return self._get(self._bestiary_url(record_key(name, source)))

    def get_template(self, name: str, source: str = "") -> Optional[dict]:
        return self._get(self._template_url(record_key(name, source)))


class RemoteLookups(Lookups):
    """Lookup collaborators backed by a ``StorageAPI``; store failures read as not found."""

    def __init__(self, api: StorageAPI):
        self.api = api
        super().__init__(find=self._find, find_template=self._find_template)

    def _safe(self, fetch, kind: str, name: str, source: str) -> Optional[dict]:
        try:
            return fetch(name, source)
        except StorageError as e:
            logger.error("Remote %s lookup for %s (%s) failed: %s", kind, name, source, e)
            return None

    def _find(self, name: str, source: str) -> Optional[dict]:
        return self._safe(self.api.get_creature, "creature", name, source)

    def _find_template(self, name: str, source: str) -> Optional[dict]:
        return self._safe(self.api.get_template, "template", name, source)
