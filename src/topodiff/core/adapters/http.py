from __future__ import annotations

import logging
from typing import Any

import requests

from topodiff.core.leader import HealthReport

logger = logging.getLogger(__name__)


class MasterHttpAdapter:
    """Adapter around the master web endpoints (entities, leader, health)."""

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        timeout: float = 10.0,
        scheme: str = "http",
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout
        self.scheme = scheme

    def _url(self, host: str, port: str, path: str) -> str:
        return f"{self.scheme}://{host}:{port}/{path.lstrip('/')}"

    def _get(self, host: str, port: str, path: str) -> requests.Response | None:
        url = self._url(host, port, path)
        try:
            return self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.debug("(%s:%s) request to %s failed: %s", host, port, url, exc)
            return None

    def dump_entities(self, host: str, port: str) -> str:
        """Return the raw `/dump-entities` body, or an empty string on failure."""
        response = self._get(host, port, "dump-entities")
        if response is None or not response.ok:
            return ""
        return response.text

    def is_leader(self, host: str, port: str) -> bool:
        """Return True if the master at host:port answers as leader."""
        response = self._get(host, port, "api/v1/is-leader")
        return response is not None and response.status_code == 200

    def health_check(self, host: str, port: str) -> HealthReport:
        """Return dead tablet servers and under-replicated shards reported by a master."""
        response = self._get(host, port, "api/v1/health-check")
        if response is None or not response.ok:
            return HealthReport()
        try:
            payload: Any = response.json()
        except ValueError as exc:
            logger.debug("(%s:%s) could not parse health-check json: %s", host, port, exc)
            return HealthReport()
        return HealthReport.from_dict(payload)
