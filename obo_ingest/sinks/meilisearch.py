# obo_ingest/sinks/meilisearch.py
import json
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import requests

from obo_ingest.sinks.base import ERROR_SAMPLE_CHARS, Sink, SinkError, check_response

logger = logging.getLogger(__name__)


class MeilisearchSink(Sink):
    """
    Search-index sink speaking the Meilisearch REST API.

    Documents are added with `primaryKey=id`, so re-sending a document with
    an existing id replaces it.
    """

    name = "meilisearch"

    def __init__(self, base_url: str, api_key: str = "", primary_key: str = "id",
                 timeout: float = 60.0, session: Optional[requests.Session] = None,
                 task_poll_attempts: int = 120, task_poll_interval: float = 0.5):
        self.base_url = base_url.rstrip("/")
        self.primary_key = primary_key
        self.timeout = timeout
        self.task_poll_attempts = task_poll_attempts
        self.task_poll_interval = task_poll_interval
        self.session = session or requests.Session()
        if api_key:
            self.session.headers["Authorization"] = f"Bearer {api_key}"
        logger.info(f"MeilisearchSink initialized for: {self.base_url}")

    def _request(self, method: str, path: str, payload: Any = None,
                 params: Optional[Dict[str, str]] = None) -> requests.Response:
        body = json.dumps(payload, ensure_ascii=False) if payload is not None else ""
        try:
            resp = self.session.request(
                method,
                f"{self.base_url}{path}",
                data=body.encode("utf-8") if body else None,
                params=params,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SinkError(f"Meilisearch {method} {path} failed: {e}",
                            request_sample=body[:ERROR_SAMPLE_CHARS]) from e
        check_response(resp, body)
        return resp

    def configure_index(self, uid: str, filterable_attributes: List[str]) -> None:
        """Declares the primary key and filterable attributes of `uid`."""
        try:
            self._request("POST", "/indexes", {"uid": uid, "primaryKey": self.primary_key})
        except SinkError as e:
            # 4xx here usually means the index already exists; settings below still apply
            if e.status is None or e.status >= 500:
                raise
            logger.debug(f"Index '{uid}' not created: {e}")
        self._request("PUT", f"/indexes/{uid}/settings/filterable-attributes", filterable_attributes)
        logger.info(f"Configured index: {uid}")

    def wait_for_task(self, response: requests.Response) -> None:
        """
        Polls `/tasks/{taskUid}` until the enqueued task finishes.

        Writes are accepted with 202 and applied asynchronously, so a
        rejected batch only shows up here. Raises SinkError if the task
        failed, was canceled, or is still pending after `task_poll_attempts`.
        """
        try:
            task_uid = response.json().get("taskUid")
        except (ValueError, AttributeError):
            task_uid = None
        if task_uid is None:
            logger.debug("Response carried no taskUid; not waiting.")
            return

        for attempt in range(1, self.task_poll_attempts + 1):
            task = self._request("GET", f"/tasks/{task_uid}").json()
            status = task.get("status")
            if status == "succeeded":
                return
            if status in ("failed", "canceled"):
                error = task.get("error") or {}
                raise SinkError(
                    f"Meilisearch task {task_uid} {status}: {error.get('message', '')}",
                    body=json.dumps(task, ensure_ascii=False),
                )
            if attempt < self.task_poll_attempts:
                time.sleep(self.task_poll_interval)
        raise SinkError(f"Meilisearch task {task_uid} still pending after {self.task_poll_attempts} checks")

    def clear(self, destination: str) -> None:
        self.wait_for_task(self._request("DELETE", f"/indexes/{destination}/documents"))

    def write_batch(self, destination: str, items: Sequence[Dict[str, Any]]) -> None:
        if not items:
            return
        response = self._request(
            "POST",
            f"/indexes/{destination}/documents",
            list(items),
            params={"primaryKey": self.primary_key},
        )
        self.wait_for_task(response)

    def close(self) -> None:
        self.session.close()
