"""
HTTP client for the examination backend.

Thin wrapper over a requests.Session: joins paths onto the configured base
URL, adds the bearer token, and maps failures onto the core error taxonomy.
There are no retries; a timeout is just another TransportError.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from eyeexam.config import settings
from eyeexam.errors import NotFoundError, TransportError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class EmrClientConfig:
    """Configuration for the backend client"""
    base_url: str = field(default_factory=lambda: settings.emr_api_url)
    timeout: float = field(default_factory=lambda: settings.emr_api_timeout)
    token: Optional[str] = field(default_factory=lambda: settings.emr_api_token)


def _field_errors(body: Any) -> Dict[str, str]:
    # {"message": "...", "errors": {"field": ["msg", ...]}}
    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, dict) and errors:
            out = {}
            for name, msgs in errors.items():
                if isinstance(msgs, (list, tuple)):
                    out[name] = str(msgs[0]) if msgs else "invalid"
                else:
                    out[name] = str(msgs)
            return out
        if body.get("message"):
            return {"non_field": str(body["message"])}
    return {"non_field": "Request was rejected"}


def _message(body: Any, default: str) -> str:
    if isinstance(body, dict):
        data = body.get("data")
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        if body.get("message"):
            return str(body["message"])
    return default


class EmrClient:
    """Client for the examination (EMR) REST backend"""

    def __init__(self, config: EmrClientConfig = None, session: requests.Session = None):
        self.config = config or EmrClientConfig()
        self.session = session or requests.Session()
        if self.config.token:
            self.session.headers["Authorization"] = f"Bearer {self.config.token}"
        self.session.headers.setdefault("Accept", "application/json")

    def url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    def request(self, method: str, path: str, params: Dict[str, Any] = None, json: Any = None) -> Any:
        if params:
            params = {k: v for k, v in params.items() if v is not None and v != ""}
        try:
            response = self.session.request(
                method, self.url(path), params=params or None, json=json, timeout=self.config.timeout
            )
        except requests.exceptions.Timeout:
            logger.warning(f"{method} {path} timed out after {self.config.timeout}s")
            raise TransportError(f"{method} {path} timed out")
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise TransportError(f"No response from server: {e}")

        body = self._decode(response)
        status = response.status_code
        if status == 404:
            raise NotFoundError(path, message=_message(body, f"{path} not found"))
        if status in (400, 422):
            raise ValidationError(_field_errors(body))
        if not response.ok:
            logger.error(f"{method} {path} -> HTTP {status}")
            raise TransportError(_message(body, "Server Error"), status_code=status)
        return body

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            if response.ok:
                raise TransportError("Backend returned a non-JSON body", status_code=response.status_code)
            return None

    def get(self, path: str, params: Dict[str, Any] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request("POST", path, json=json)

    def patch(self, path: str, json: Any = None) -> Any:
        return self.request("PATCH", path, json=json)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)
