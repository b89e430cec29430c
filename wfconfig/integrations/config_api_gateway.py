"""
Workflow Configuration API Gateway.

All outbound HTTP calls to a remote configuration service go through this
class. It implements the same three calls as ServiceConfigBackend so a
ConfigSession can edit against a remote collaborator:

    GET  {base}/applications/<app_id>/metadata
    GET  {base}/instances/<config_id>/applications/<app_id>/setup
    POST {base}/instances/<config_id>/applications/<app_id>/setup   (create)
    PUT  {base}/instances/<config_id>/applications/<app_id>/setup   (update)

  - Retry: idempotent GETs only, max 2 retries, backoff 1 s → 4 s
  - Saves are never retried; a failed save is left to the operator
  - Timeout: 30 s by default (WORKFLOW_CONFIG_API_TIMEOUT)
  - 404 on the setup resource means "nothing saved yet" → []
  - Every other failure surfaces as BackendError

Testability: pass a mock `session` to ConfigApiGateway() in tests instead
of letting it create a real requests.Session internally.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

from wfconfig.core.exceptions import BackendError

logger = logging.getLogger(__name__)

# ── Retry constants ────────────────────────────────────────────────────────
_RETRY_MAX = 2
_RETRY_BACKOFF_SECONDS = [1, 4]    # sleep[0] after 1st fail, sleep[1] after 2nd
_RETRYABLE_METHODS = frozenset({"GET"})
_RETRYABLE_STATUS = frozenset({429, 502, 503, 504})

# ── Default request timeout ────────────────────────────────────────────────
_DEFAULT_TIMEOUT = 30


class GatewayResult:
    """Structured return value from ConfigApiGateway.request.

    Attributes:
        ok:             True if the call succeeded (HTTP 2xx + no exception).
        status_code:    HTTP status code (None if network-level failure).
        data:           Parsed JSON response body (dict or list), else None.
        error:          Human-readable error message or None.
        duration_ms:    Round-trip latency in milliseconds.
        attempts:       Number of HTTP attempts made.
    """

    def __init__(
        self,
        ok: bool,
        status_code: int | None,
        data: dict | list | None,
        error: str | None,
        duration_ms: int,
        attempts: int = 1,
    ) -> None:
        self.ok = ok
        self.status_code = status_code
        self.data = data
        self.error = error
        self.duration_ms = duration_ms
        self.attempts = attempts

    def raise_for_error(self) -> None:
        if not self.ok:
            raise BackendError(self.error or "Configuration API request failed", status_code=self.status_code)

    def __repr__(self):
        return f"<GatewayResult ok={self.ok} status={self.status_code} attempts={self.attempts}>"


class ConfigApiGateway:
    """Remote configuration backend over HTTP.

    Usage:
        gateway = ConfigApiGateway("https://wfconfig.example.com/api/v1/workflow-config")
        session = ConfigSession(gateway)
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: int = _DEFAULT_TIMEOUT,
        token: str | None = None,
        session: requests.Session | None = None,
        sleep=time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token = token
        # Inject custom session for testing; create real one lazily otherwise.
        self._session: requests.Session | None = session
        self._sleep = sleep

    @classmethod
    def from_app_config(cls, config: dict, **kwargs) -> ConfigApiGateway:
        return cls(
            config["WORKFLOW_CONFIG_API_URL"],
            timeout=int(config.get("WORKFLOW_CONFIG_API_TIMEOUT", _DEFAULT_TIMEOUT)),
            token=config.get("WORKFLOW_CONFIG_API_TOKEN"),
            **kwargs,
        )

    # ── HTTP session ─────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    # ── Core request dispatcher ───────────────────────────────────────────────

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict | list | None = None,
        params: dict | None = None,
    ) -> GatewayResult:
        """Execute a request against the configuration API.

        GETs are retried on network errors, timeouts and 429/5xx gateway
        statuses. Other methods get exactly one attempt.

        Returns:
            GatewayResult — never raises. Callers check .ok.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        max_attempts = _RETRY_MAX + 1 if method.upper() in _RETRYABLE_METHODS else 1
        last_error = "Unknown error"
        last_status: int | None = None
        started = time.perf_counter()

        for attempt in range(max_attempts):
            kwargs: dict[str, Any] = {"headers": self._headers(), "timeout": self.timeout}
            if json_body is not None:
                kwargs["json"] = json_body
            if params:
                kwargs["params"] = params

            retryable = False
            try:
                resp = self.session.request(method, url, **kwargs)
                last_status = resp.status_code
                if resp.ok:
                    try:
                        data = resp.json() if resp.content else None
                    except ValueError:
                        data = None
                    return GatewayResult(
                        ok=True,
                        status_code=resp.status_code,
                        data=data,
                        error=None,
                        duration_ms=int((time.perf_counter() - started) * 1000),
                        attempts=attempt + 1,
                    )
                last_error = f"HTTP {resp.status_code}: {_error_text(resp)}"
                retryable = resp.status_code in _RETRYABLE_STATUS
                logger.warning(
                    "Config API request failed attempt=%d/%d status=%d %s %s",
                    attempt + 1, max_attempts, resp.status_code, method, url,
                )

            except requests.Timeout:
                last_error = f"Request timed out after {self.timeout}s"
                retryable = True
                logger.warning("Config API timeout attempt=%d/%d %s %s",
                               attempt + 1, max_attempts, method, url)

            except requests.RequestException as exc:
                last_error = str(exc)[:500]
                retryable = True
                logger.warning("Config API network error attempt=%d/%d %s %s error=%s",
                               attempt + 1, max_attempts, method, url, last_error)

            if not retryable or attempt + 1 >= max_attempts:
                break
            sleep_s = _RETRY_BACKOFF_SECONDS[min(attempt, len(_RETRY_BACKOFF_SECONDS) - 1)]
            logger.info("Retrying config API request in %ss (attempt %d)", sleep_s, attempt + 2)
            self._sleep(sleep_s)

        return GatewayResult(
            ok=False,
            status_code=last_status,
            data=None,
            error=last_error,
            duration_ms=int((time.perf_counter() - started) * 1000),
            attempts=attempt + 1,
        )

    # ── Backend operations ────────────────────────────────────────────────────

    def get_metadata(self, app_id: int) -> dict:
        result = self.request("GET", f"applications/{app_id}/metadata")
        result.raise_for_error()
        return result.data or {}

    def get_instance_config(self, instance_id: str, app_id: int) -> list[dict]:
        result = self.request("GET", f"instances/{instance_id}/applications/{app_id}/setup")
        if result.status_code == 404:
            return []
        result.raise_for_error()
        return _items(result.data)

    def save_or_update_config(
        self, instance_id: str, app_id: int, payload: list[dict], *, update: bool,
    ) -> list[dict]:
        method = "PUT" if update else "POST"
        result = self.request(
            method, f"instances/{instance_id}/applications/{app_id}/setup", json_body=payload,
        )
        result.raise_for_error()
        logger.info("Configuration %s via API for instance %s (%d entries)",
                    "updated" if update else "created", instance_id, len(payload))
        return _items(result.data)


def _error_text(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "")[:500]
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])[:500]
    return (resp.text or "")[:500]


def _items(data) -> list[dict]:
    if isinstance(data, dict):
        return data.get("items") or []
    return data or []
