"""
vidscript.transcribe.session - Remote speech-recognition session.

One session carries one audio file through the service workflow:

1. request an upload plan, PUT the file in chunks, commit the ETags
2. create a recognition task for the uploaded resource
3. poll the task until it finishes, fails, or the attempt ceiling is hit

Everything is sequential and blocking. Chunks go up strictly in index order
because the commit call must list their ETags in that order.
"""

from __future__ import annotations

import threading
import time
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import requests

from vidscript.config import ServiceConfig
from vidscript.events import Observer, emit
from vidscript.exceptions import (
    PollTimeoutError,
    ServiceError,
    SessionStateError,
    TranscriptionCancelledError,
    TranscriptionError,
    TranscriptionFailedError,
)
from vidscript.transcribe.models import ASRResult, parse_result

TASK_STATE_FAILED = 3
TASK_STATE_DONE = 4

UPLOAD_OK_STATUSES = {200, 201}

GENERIC_FAILURE_REMARK = "unknown error (unsupported audio format or corrupted file?)"


class SessionState(str, Enum):
    CREATED = "created"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    TASK_CREATED = "task_created"
    POLLING = "polling"
    DONE = "done"
    FAILED = "failed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class TranscriptionSession:
    """Stateful client for one upload → task → poll cycle.

    Not reusable: create a new session for every audio file.
    """

    def __init__(
        self,
        audio_path: Path,
        audio_format: str = "",
        service: ServiceConfig | None = None,
        http: requests.Session | None = None,
        observer: Observer | None = None,
        cancel: threading.Event | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.audio_path = audio_path
        self.audio_format = audio_format or "mp3"
        self.service = service or ServiceConfig()
        self.observer = observer
        self.cancel = cancel
        self._sleep = sleep
        self._owns_http = http is None
        self.http = http if http is not None else requests.Session()

        self.state = SessionState.CREATED
        self.resource_id = ""
        self.upload_id = ""
        self.in_boss_key = ""
        self.download_url = ""
        self.etags: list[str] = []
        self.task_id = ""
        self.result: ASRResult | None = None

    def __enter__(self) -> TranscriptionSession:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP session if this object created it."""
        if self._owns_http:
            self.http.close()

    def run(self) -> str:
        """Upload, recognize and return the transcript text."""
        self.upload()
        self.create_task()
        result = self.poll_result()
        text = self.to_text(result)
        emit(self.observer, "session.completed", task_id=self.task_id, chars=len(text))
        return text

    def upload(self) -> None:
        """Upload the audio file and commit it as a service resource.

        Raises:
            ServiceError: On a non-zero service code, a bad chunk status,
                or an upload plan that does not match the file size
        """
        self._require(SessionState.CREATED, "upload")
        self.state = SessionState.UPLOADING
        try:
            self._upload()
        except BaseException:
            self.state = SessionState.FAILED
            raise
        self.state = SessionState.UPLOADED

    def _upload(self) -> None:
        file_size = self.audio_path.stat().st_size
        plan = self._call(
            "POST",
            self.service.request_upload_url,
            "Request upload",
            data={
                "type": "2",
                "name": f"audio.{self.audio_format}",
                "size": str(file_size),
                "resource_file_type": self.audio_format,
                "model_id": self.service.model_id,
            },
        )

        self.resource_id = plan.get("resource_id", "")
        self.upload_id = plan.get("upload_id", "")
        self.in_boss_key = plan.get("in_boss_key", "")
        self.download_url = plan.get("download_url", "")
        upload_urls = plan.get("upload_urls") or []
        per_size = int(plan.get("per_size") or 0)

        emit(
            self.observer,
            "session.upload_requested",
            resource_id=self.resource_id,
            chunks=len(upload_urls),
            per_size=per_size,
            file_size=file_size,
        )

        if per_size <= 0 or -(-file_size // per_size) != len(upload_urls):
            raise ServiceError(
                f"Upload plan does not fit the file: {len(upload_urls)} URL(s) "
                f"of {per_size} bytes for {file_size} bytes"
            )

        self.etags = []
        with open(self.audio_path, "rb") as f:
            for index, url in enumerate(upload_urls):
                chunk = f.read(per_size)
                self.etags.append(self._put_chunk(index, len(upload_urls), url, chunk))

        committed = self._call(
            "POST",
            self.service.commit_upload_url,
            "Commit upload",
            data={
                "in_boss_key": self.in_boss_key,
                "resource_id": self.resource_id,
                "etags": ",".join(self.etags),
                "upload_id": self.upload_id,
                "model_id": self.service.model_id,
            },
        )
        if committed.get("download_url"):
            self.download_url = committed["download_url"]

        emit(self.observer, "session.upload_committed", download_url=self.download_url)

    def _put_chunk(self, index: int, total: int, url: str, chunk: bytes) -> str:
        try:
            resp = self.http.put(
                url,
                data=chunk,
                headers=self._headers(),
                timeout=self.service.upload_timeout,
            )
        except requests.RequestException as e:
            raise ServiceError(f"Uploading chunk {index + 1}/{total} failed: {e}") from e

        if resp.status_code not in UPLOAD_OK_STATUSES:
            raise ServiceError(
                f"Uploading chunk {index + 1}/{total} failed, status: {resp.status_code}",
                status=resp.status_code,
                body=resp.text,
            )

        etag = resp.headers.get("Etag") or resp.headers.get("ETag") or ""
        emit(
            self.observer,
            "session.chunk_uploaded",
            chunk=index + 1,
            total=total,
            size=len(chunk),
            etag=etag,
        )
        return etag

    def create_task(self) -> str:
        """Create a recognition task for the uploaded resource.

        Returns:
            The task id
        """
        self._require(SessionState.UPLOADED, "create_task")
        try:
            data = self._call(
                "POST",
                self.service.create_task_url,
                "Create task",
                json_body={"resource": self.download_url, "model_id": self.service.model_id},
            )
            task_id = data.get("task_id")
            if not task_id:
                raise ServiceError("Create task returned no task id")
        except BaseException:
            self.state = SessionState.FAILED
            raise

        self.task_id = str(task_id)
        self.state = SessionState.TASK_CREATED
        emit(self.observer, "session.task_created", task_id=self.task_id)
        return self.task_id

    def poll_result(self) -> ASRResult:
        """Poll the task until it reaches a terminal state.

        Raises:
            TranscriptionFailedError: If the task ends in the failed state
            PollTimeoutError: If the attempt ceiling is exhausted
            TranscriptionCancelledError: If the cancel signal fires
            ResultParseError: If the finished result is malformed
            ServiceError: On a non-zero service code
        """
        self._require(SessionState.TASK_CREATED, "poll_result")
        self.state = SessionState.POLLING
        attempts = self.service.poll_attempts

        try:
            for attempt in range(attempts):
                if self.cancel is not None and self.cancel.is_set():
                    self.state = SessionState.CANCELLED
                    raise TranscriptionCancelledError(
                        f"Polling cancelled after {attempt} attempt(s)"
                    )

                data = self._call(
                    "GET",
                    self.service.query_result_url,
                    "Query result",
                    params={"model_id": self.service.model_id, "task_id": self.task_id},
                )
                task_state = _task_state(data)
                emit(
                    self.observer,
                    "session.poll",
                    attempt=attempt + 1,
                    state=task_state,
                    remark=data.get("remark", ""),
                )

                if task_state == TASK_STATE_DONE:
                    self.result = parse_result(data.get("result"))
                    self.state = SessionState.DONE
                    return self.result

                if task_state == TASK_STATE_FAILED:
                    remark = data.get("remark") or GENERIC_FAILURE_REMARK
                    emit(self.observer, "session.task_failed", task_id=self.task_id, remark=remark)
                    raise TranscriptionFailedError(remark)

                if attempt < attempts - 1:
                    self._wait()
        except TranscriptionError:
            if self.state == SessionState.POLLING:
                self.state = SessionState.FAILED
            raise

        self.state = SessionState.TIMEOUT
        raise PollTimeoutError(
            f"Task {self.task_id} did not finish after {attempts} attempt(s)"
        )

    def to_text(self, result: ASRResult | None = None) -> str:
        """Join utterance texts with newlines."""
        result = result or self.result
        if result is None:
            raise SessionStateError("No recognition result available yet")
        return result.to_text()

    def _wait(self) -> None:
        interval = self.service.poll_interval
        if self.cancel is not None:
            self.cancel.wait(interval)
        else:
            self._sleep(interval)

    def _require(self, expected: SessionState, operation: str) -> None:
        if self.state != expected:
            raise SessionStateError(
                f"Cannot {operation} in state '{self.state.value}' "
                f"(expected '{expected.value}')"
            )

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self.service.user_agent}

    def _call(
        self,
        method: str,
        url: str,
        action: str,
        data: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Send a control request and return the ``data`` object of its reply.

        Raises:
            ServiceError: On transport failure, non-2xx status, a body that is
                not a JSON object, or a non-zero ``code``
        """
        try:
            resp = self.http.request(
                method,
                url,
                data=data,
                json=json_body,
                params=params,
                headers=self._headers(),
                timeout=self.service.request_timeout,
            )
        except requests.RequestException as e:
            raise ServiceError(f"{action} failed: {e}") from e

        body = resp.text
        if not 200 <= resp.status_code < 300:
            raise ServiceError(
                f"{action} failed, status: {resp.status_code}",
                status=resp.status_code,
                body=body,
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise ServiceError(
                f"{action} returned invalid JSON: {body[:200]}",
                status=resp.status_code,
                body=body,
            ) from e
        if not isinstance(payload, dict):
            raise ServiceError(f"{action} returned unexpected body", body=body)

        code = payload.get("code")
        if code != 0:
            raise ServiceError(
                f"{action} failed, code: {code}, message: {payload.get('message', '')}",
                code=code,
                status=resp.status_code,
                body=body,
            )
        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise ServiceError(
                f"{action} returned a non-object data field", status=resp.status_code, body=body
            )
        return data


def _task_state(data: dict[str, Any]) -> int:
    # non-numeric states are treated like any other unrecognized value
    try:
        return int(data.get("state", 0))
    except (TypeError, ValueError):
        return -1
