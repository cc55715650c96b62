"""
Render deployment restart proxy.

Used endpoint:
- POST {RENDER_API_BASE}/services/{service_id}/restart  (Bearer auth)
"""

from __future__ import annotations

import logging

import httpx

from qc_api.config import SETTINGS

logger = logging.getLogger("qc.restart")


# Restart failures keep the status to relay and a short upstream detail.
class RestartError(RuntimeError):
    def __init__(self, status_code: int, error: str, details: str | None = None):
        super().__init__(f"{status_code} {error}: {details or ''}".strip())
        self.status_code = status_code
        self.error = error
        self.details = details

    def payload(self) -> dict:
        body = {"error": self.error}
        if self.details:
            body["details"] = self.details
        return body


def _client(timeout_s: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=SETTINGS.RENDER_API_BASE, timeout=timeout_s)


async def trigger_restart(*, timeout_s: float | None = None) -> dict:
    """
    Ask Render to restart the configured service.
    Returns {"message": ...} on 2xx, raises RestartError otherwise.
    """
    if not SETTINGS.restart_configured:
        raise RestartError(503, "Restart is not configured")

    timeout_s = SETTINGS.RESTART_TIMEOUT_SEC if timeout_s is None else timeout_s
    path = f"/services/{SETTINGS.RENDER_SERVICE_ID}/restart"
    headers = {
        "Authorization": f"Bearer {SETTINGS.RENDER_API_KEY}",
        "Accept": "application/json",
    }

    try:
        async with _client(timeout_s) as client:
            resp = await client.post(path, headers=headers)
    except httpx.HTTPError as e:
        logger.error("Restart request failed: %r", e)
        raise RestartError(500, "Restart request failed", str(e) or e.__class__.__name__) from e

    if resp.status_code // 100 != 2:
        # Avoid relaying huge bodies; include a small snippet.
        body = resp.text[:500]
        logger.error("Restart rejected upstream: %s %s", resp.status_code, body)
        raise RestartError(resp.status_code, "Restart failed", body)

    logger.info("Restart triggered for service %s (%s)", SETTINGS.RENDER_SERVICE_ID, resp.status_code)
    return {"message": "Service restart triggered"}
