"""Tests for the Suno HTTP client: wire format, headers, error mapping."""

import json
from typing import Any, Dict, List, Optional

import pytest
import requests

from hibeats.config import SunoConfig
from hibeats.models import Failed, GenerationRequest, Pending, Succeeded, TaskHandle
from hibeats.providers.base import ServiceError
from hibeats.providers.suno import SunoClient, artifact_from_record, artifacts_from_callback


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeSession:
    def __init__(self, responses: List[Any]) -> None:
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


def make_client(responses: List[Any], callback_url: str = "") -> "tuple[SunoClient, FakeSession]":
    session = FakeSession(responses)
    cfg = SunoConfig(api_key="k-123", api_base="https://suno.test", callback_url=callback_url, timeout_s=5.0)
    return SunoClient(cfg, session=session), session  # type: ignore[arg-type]


def status_body(status: str, sunoData: Optional[list] = None, errorMessage: Optional[str] = None) -> Dict[str, Any]:
    data: Dict[str, Any] = {"taskId": "t-1", "status": status, "errorMessage": errorMessage}
    if sunoData is not None:
        data["response"] = {"taskId": "t-1", "sunoData": sunoData}
    return {"code": 200, "msg": "success", "data": data}


def test_submit_sends_payload_and_headers() -> None:
    client, session = make_client(
        [FakeResponse(body={"code": 200, "msg": "success", "data": {"taskId": "abc"}})],
        callback_url="https://app.test/api/suno-callback",
    )
    req = GenerationRequest(prompt="lofi beat", style="lofi", instrumental=True, model="V4")

    handle = client.submit(req)

    assert handle == TaskHandle(task_id="abc", request_id=req.request_id)
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://suno.test/api/v1/generate"
    assert call["headers"] == {"Authorization": "Bearer k-123", "Content-Type": "application/json"}
    assert call["json"] == {
        "prompt": "lofi beat",
        "customMode": False,
        "instrumental": True,
        "model": "V4",
        "style": "lofi",
        "callBackUrl": "https://app.test/api/suno-callback",
    }
    assert call["timeout"] == 5.0


def test_request_callback_overrides_configured_one() -> None:
    client, session = make_client(
        [FakeResponse(body={"code": 200, "data": {"taskId": "abc"}})],
        callback_url="https://default.test/cb",
    )
    client.submit(GenerationRequest(prompt="x", callback_url="https://mine.test/cb"))
    assert session.calls[0]["json"]["callBackUrl"] == "https://mine.test/cb"


def test_submit_non_200_code_in_body() -> None:
    client, _ = make_client([FakeResponse(body={"code": 429, "msg": "insufficient credits"})])
    with pytest.raises(ServiceError, match="insufficient credits"):
        client.submit(GenerationRequest(prompt="x"))


def test_submit_http_error_uses_msg_or_status() -> None:
    client, _ = make_client([FakeResponse(status_code=401, body={"msg": "bad key"})])
    with pytest.raises(ServiceError, match="bad key"):
        client.submit(GenerationRequest(prompt="x"))

    client, _ = make_client([FakeResponse(status_code=502, body=None)])
    with pytest.raises(ServiceError, match="HTTP error! status: 502"):
        client.submit(GenerationRequest(prompt="x"))


def test_submit_missing_task_id_is_malformed() -> None:
    client, _ = make_client([FakeResponse(body={"code": 200, "data": {}})])
    with pytest.raises(ServiceError, match="taskId"):
        client.submit(GenerationRequest(prompt="x"))


def test_transport_failure_is_service_error() -> None:
    client, _ = make_client([requests.exceptions.ConnectionError("refused")])
    with pytest.raises(ServiceError, match="refused"):
        client.submit(GenerationRequest(prompt="x"))


def test_non_json_body_is_service_error() -> None:
    client, _ = make_client([FakeResponse(status_code=200, body=None, text="<html>")])
    with pytest.raises(ServiceError, match="non-JSON"):
        client.query_status(TaskHandle(task_id="t-1"))


def test_query_status_pending() -> None:
    client, session = make_client([FakeResponse(body=status_body("TEXT_SUCCESS"))])

    status = client.query_status(TaskHandle(task_id="t-1"))

    assert status == Pending(raw_status="TEXT_SUCCESS")
    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "https://suno.test/api/v1/generate/record-info"
    assert call["params"] == {"taskId": "t-1"}


def test_query_status_success_parses_artifacts_in_order() -> None:
    suno_data = [
        {
            "id": "t1",
            "audioUrl": "https://cdn/t1.mp3",
            "streamAudioUrl": "https://cdn/t1/stream",
            "imageUrl": "https://cdn/t1.jpg",
            "prompt": "lofi beat",
            "modelName": "chirp-v3-5",
            "title": "Chill",
            "tags": "lofi, chill",
            "createTime": "2026-10-19 10:00:00",
            "duration": 31.4,
        },
        {"id": "t2", "title": "Second", "duration": "95.5"},
    ]
    client, _ = make_client([FakeResponse(body=status_body("SUCCESS", suno_data))])

    status = client.query_status(TaskHandle(task_id="t-1"))

    assert isinstance(status, Succeeded)
    first, second = status.artifacts
    assert first.id == "t1"
    assert first.audio_url == "https://cdn/t1.mp3"
    assert first.model_name == "chirp-v3-5"
    assert first.duration == pytest.approx(31.4)
    assert second.id == "t2"
    assert second.duration == pytest.approx(95.5)
    assert second.tags == ""


def test_query_status_success_without_response_has_no_artifacts() -> None:
    client, _ = make_client([FakeResponse(body=status_body("SUCCESS"))])
    status = client.query_status(TaskHandle(task_id="t-1"))
    assert status == Succeeded(artifacts=())


def test_query_status_failure_carries_service_message() -> None:
    client, _ = make_client([FakeResponse(body=status_body("SENSITIVE_WORD_ERROR", errorMessage="blocked word"))])
    status = client.query_status(TaskHandle(task_id="t-1"))
    assert status == Failed(reason="blocked word", raw_status="SENSITIVE_WORD_ERROR")


def test_query_status_missing_status_is_malformed() -> None:
    client, _ = make_client([FakeResponse(body={"code": 200, "data": {"taskId": "t-1"}})])
    with pytest.raises(ServiceError, match="status"):
        client.query_status(TaskHandle(task_id="t-1"))


def test_artifact_without_id_is_malformed() -> None:
    client, _ = make_client([FakeResponse(body=status_body("SUCCESS", [{"title": "no id"}]))])
    with pytest.raises(ServiceError, match="missing id"):
        client.query_status(TaskHandle(task_id="t-1"))


def test_artifacts_from_callback_normalizes_snake_case() -> None:
    payload = {
        "code": 200,
        "msg": "All generated successfully.",
        "data": {
            "callbackType": "complete",
            "task_id": "t-9",
            "data": [
                {
                    "id": "c1",
                    "audio_url": "https://cdn/c1.mp3",
                    "stream_audio_url": "https://cdn/c1/stream",
                    "image_url": "https://cdn/c1.jpg",
                    "prompt": "p",
                    "model_name": "chirp-v4",
                    "title": "Callback",
                    "tags": "ambient",
                    "createTime": "2026-10-19",
                    "duration": 60,
                }
            ],
        },
    }

    task_id, artifacts = artifacts_from_callback(payload)

    assert task_id == "t-9"
    assert artifacts[0].audio_url == "https://cdn/c1.mp3"
    assert artifacts[0].image_url == "https://cdn/c1.jpg"
    assert artifacts[0].model_name == "chirp-v4"
    assert artifacts[0].create_time == "2026-10-19"


def test_artifacts_from_callback_requires_task_id() -> None:
    with pytest.raises(ServiceError):
        artifacts_from_callback({"data": {"data": []}})


@pytest.mark.parametrize("raw", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_duration_reads_as_zero(raw: str) -> None:
    record = json.loads('{"id": "t1", "title": "Chill", "duration": %s}' % raw)

    assert artifact_from_record(record).duration == 0.0
    assert artifact_from_record({"id": "t1", "duration": raw.lower()}).duration == 0.0
