from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

import requests

from solviz.adapters.cache import ResponseCache
from solviz.config import settings
from solviz.io.parsing import parse_names
from solviz.ports.name_port import NameResolverPort

logger = logging.getLogger(__name__)


class HeliusNameAdapter(NameResolverPort):
    """
    Best-effort address -> display name lookup. Failures resolve to no names.
    """

    def __init__(
        self,
        api_key: Optional[str] = settings.HELIUS_API_KEY,
        base_url: str = settings.HELIUS_BASE_URL,
        cache: Optional[ResponseCache] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key
        self._url = f"{base_url.rstrip('/')}/addresses/names"
        self._cache = cache if cache is not None else ResponseCache()
        self._session = session or requests.Session()

    def get_names(self, addresses: Iterable[str]) -> Dict[str, str]:
        wanted = sorted({a for a in addresses if a})
        if not wanted or not self._api_key:
            return {}

        names: Dict[str, str] = {}
        missing = []
        for a in wanted:
            cached = self._cache.get(("name", a))
            if cached is None:
                missing.append(a)
            elif cached:
                names[a] = cached

        if not missing:
            return names

        try:
            resp = self._session.post(
                self._url,
                params={"api-key": self._api_key},
                json={"addresses": missing},
                timeout=settings.HELIUS_TIMEOUT_SEC,
            )
            resp.raise_for_status()
            fetched = parse_names(resp.json(), missing)
        except (requests.RequestException, ValueError) as e:
            logger.warning("name lookup failed for %d address(es): %s", len(missing), e)
            return names

        for a in missing:
            # "" caches a confirmed miss
            self._cache.set(("name", a), fetched.get(a, ""))
        names.update(fetched)
        return names
