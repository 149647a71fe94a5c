from __future__ import annotations

import logging
from typing import Any

import requests

from genxai.errors import ServiceError

logger = logging.getLogger(__name__)


class ServiceClient:
    service_name = "service"

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _check(self, response: requests.Response) -> requests.Response:
        if response.status_code >= 400:
            detail = response.text[:300] if response.text else ""
            raise ServiceError(
                self.service_name,
                f"HTTP {response.status_code} from {response.url}: {detail}".strip(),
                status_code=response.status_code,
            )
        return response

    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ServiceError(self.service_name, "response was not valid JSON") from exc

    def get(self, path: str, **kwargs: Any) -> requests.Response:
        url = self.url(path)
        logger.debug("GET %s", url)
        try:
            response = requests.get(url, timeout=kwargs.pop("timeout", self.timeout), **kwargs)
        except requests.RequestException as exc:
            raise ServiceError(self.service_name, f"request to {url} failed: {exc}") from exc
        return self._check(response)

    def post(self, path: str, **kwargs: Any) -> requests.Response:
        url = self.url(path)
        logger.debug("POST %s", url)
        try:
            response = requests.post(url, timeout=kwargs.pop("timeout", self.timeout), **kwargs)
        except requests.RequestException as exc:
            raise ServiceError(self.service_name, f"request to {url} failed: {exc}") from exc
        return self._check(response)

    def get_json(self, path: str, **kwargs: Any) -> Any:
        return self._json(self.get(path, **kwargs))

    def post_json(self, path: str, **kwargs: Any) -> Any:
        return self._json(self.post(path, **kwargs))
