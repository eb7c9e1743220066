from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

import requests

from hibeats.config import SunoConfig
from hibeats.models import (
    Failed,
    GenerationRequest,
    Pending,
    RawArtifact,
    Succeeded,
    TaskHandle,
    TaskStatus,
)

from .base import ServiceError

log = logging.getLogger(__name__)

SUCCESS_STATUS = "SUCCESS"
FAILURE_MARKER = "FAILED"
REJECTED_STATUS = "SENSITIVE_WORD_ERROR"


def classify_status(
    status: str,
    *,
    error_message: Optional[str] = None,
    artifacts: Tuple[RawArtifact, ...] = (),
) -> TaskStatus:
    """
    Map a service status string onto the TaskStatus variant.

    SUCCESS is matched exactly. Anything containing FAILED (CREATE_TASK_FAILED,
    GENERATE_AUDIO_FAILED, ...) or the rejected-content marker is a failure.
    Everything else, including TEXT_SUCCESS / FIRST_SUCCESS, is still pending.
    """
    s = str(status or "")
    if s == SUCCESS_STATUS:
        return Succeeded(artifacts=tuple(artifacts))
    if FAILURE_MARKER in s or s == REJECTED_STATUS:
        return Failed(reason=(error_message or "Generation failed"), raw_status=s)
    return Pending(raw_status=s)


def _num(v: Any) -> float:
    # unparseable and non-finite (NaN, Infinity) durations read as 0.0
    try:
        n = float(v)
    except (TypeError, ValueError):
        return 0.0
    return n if math.isfinite(n) else 0.0


def _str(v: Any) -> str:
    return "" if v is None else str(v)


def artifact_from_record(d: Mapping[str, Any]) -> RawArtifact:
    """Parse one sunoData entry (camelCase) or callback entry (snake_case)."""
    if not isinstance(d, Mapping):
        raise ServiceError(f"malformed artifact descriptor: expected object, got {type(d).__name__}")
    artifact_id = _str(d.get("id")).strip()
    if not artifact_id:
        raise ServiceError("malformed artifact descriptor: missing id")

    def pick(camel: str, snake: str) -> str:
        v = d.get(camel)
        if v is None:
            v = d.get(snake)
        return _str(v)

    return RawArtifact(
        id=artifact_id,
        title=_str(d.get("title")),
        duration=_num(d.get("duration")),
        audio_url=pick("audioUrl", "audio_url"),
        stream_audio_url=pick("streamAudioUrl", "stream_audio_url"),
        image_url=pick("imageUrl", "image_url"),
        prompt=_str(d.get("prompt")),
        model_name=pick("modelName", "model_name"),
        tags=_str(d.get("tags")),
        create_time=pick("createTime", "create_time"),
    )


def _artifacts(items: Any) -> Tuple[RawArtifact, ...]:
    if items is None:
        return ()
    if not isinstance(items, list):
        raise ServiceError("malformed status payload: sunoData is not a list")
    return tuple(artifact_from_record(x) for x in items)


def artifacts_from_callback(payload: Mapping[str, Any]) -> Tuple[str, Tuple[RawArtifact, ...]]:
    """
    Normalize a completion callback body:
      {"code": 200, "data": {"callbackType": "complete", "task_id": ..., "data": [...]}}
    Returns (task_id, artifacts).
    """
    data = payload.get("data") if isinstance(payload, Mapping) else None
    if not isinstance(data, Mapping):
        raise ServiceError("malformed callback payload: missing data object")
    task_id = _str(data.get("task_id") or data.get("taskId")).strip()
    if not task_id:
        raise ServiceError("malformed callback payload: missing task_id")
    return task_id, _artifacts(data.get("data"))


class SunoClient:
    """
    HTTP client for the Suno generation API.

    Notes:
      - Fixed bearer credential + JSON content type on every call.
      - No internal retries: one call, one HTTP request. Retry policy lives in
        the poller.
      - Every failure (transport, HTTP status, body code, shape) is ServiceError.
    """

    name = "suno"

    def __init__(self, cfg: SunoConfig, *, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.cfg.api_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self.cfg.api_base}{endpoint}"
        try:
            r = self.session.request(
                method,
                url,
                headers=self._headers(),
                timeout=self.cfg.timeout_s,
                **kwargs,
            )
        except requests.exceptions.RequestException as e:
            raise ServiceError(f"suno request failed: {e}") from e

        if not (200 <= int(r.status_code) < 300):
            msg = ""
            try:
                body = r.json()
                if isinstance(body, dict):
                    msg = _str(body.get("msg")).strip()
            except ValueError:
                pass
            raise ServiceError(msg or f"HTTP error! status: {r.status_code}")

        try:
            obj = r.json()
        except ValueError as e:
            raise ServiceError("suno returned non-JSON response") from e
        if not isinstance(obj, dict):
            raise ServiceError("suno returned unexpected JSON shape (expected object)")
        return obj

    def submit(self, request: GenerationRequest) -> TaskHandle:
        payload = request.to_payload()
        if "callBackUrl" not in payload and self.cfg.callback_url:
            payload["callBackUrl"] = self.cfg.callback_url

        obj = self._request("POST", "/api/v1/generate", json=payload)
        if obj.get("code") != 200:
            raise ServiceError(_str(obj.get("msg")) or "Failed to generate music")

        data = obj.get("data")
        task_id = _str(data.get("taskId")).strip() if isinstance(data, dict) else ""
        if not task_id:
            raise ServiceError("suno generate response missing data.taskId")

        log.info("suno task submitted task_id=%s request_id=%s", task_id, request.request_id)
        return TaskHandle(task_id=task_id, request_id=request.request_id)

    def query_status(self, handle: TaskHandle) -> TaskStatus:
        obj = self._request(
            "GET",
            "/api/v1/generate/record-info",
            params={"taskId": handle.task_id},
        )
        if obj.get("code") != 200:
            raise ServiceError(_str(obj.get("msg")) or "Failed to get task status")

        data = obj.get("data")
        if not isinstance(data, dict):
            raise ServiceError("suno status response missing data object")
        status = data.get("status")
        if not isinstance(status, str):
            raise ServiceError("suno status response missing data.status")

        artifacts: List[RawArtifact] = []
        if status == SUCCESS_STATUS:
            response = data.get("response")
            if isinstance(response, dict):
                artifacts = list(_artifacts(response.get("sunoData")))

        return classify_status(
            status,
            error_message=_str(data.get("errorMessage")).strip() or None,
            artifacts=tuple(artifacts),
        )
