# obo_ingest/sinks/base.py
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import requests

logger = logging.getLogger(__name__)

# How much of a failing request body to keep in error messages
ERROR_SAMPLE_CHARS = 500


class SinkError(RuntimeError):
    """A remote (or local) store rejected a request or could not be reached."""

    def __init__(self, message: str, status: Optional[int] = None,
                 body: str = "", request_sample: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body
        self.request_sample = request_sample


class Sink(ABC):
    """
    Bulk-write destination for emitted items.

    `destination` names a named graph, a search index uid, or an index
    directory depending on the implementation.
    """

    name = "sink"

    @abstractmethod
    def clear(self, destination: str) -> None:
        """Removes everything previously loaded into `destination`."""

    @abstractmethod
    def write_batch(self, destination: str, items: Sequence[Any]) -> None:
        """Sends one batch; raises SinkError on failure."""

    def close(self) -> None:
        pass


def check_response(response: requests.Response, request_body: str = "") -> None:
    """Raises SinkError for any non-2xx response."""
    if 200 <= response.status_code < 300:
        return
    sample = request_body[:ERROR_SAMPLE_CHARS]
    raise SinkError(
        f"status {response.status_code}: {response.text}",
        status=response.status_code,
        body=response.text,
        request_sample=sample,
    )


def wait_for_store(url: str, attempts: int = 30, delay: float = 1.0,
                   session: Optional[requests.Session] = None) -> None:
    """Polls `url` until it answers 200. Raises SinkError after the last attempt."""
    http = session or requests.Session()
    for attempt in range(1, attempts + 1):
        try:
            resp = http.get(url, timeout=5)
            if resp.status_code == 200:
                logger.info(f"Store at {url} is ready (attempt {attempt}/{attempts}).")
                return
            logger.debug(f"Store at {url} answered {resp.status_code} (attempt {attempt}/{attempts}).")
        except requests.RequestException as e:
            logger.debug(f"Store at {url} not reachable (attempt {attempt}/{attempts}): {e}")
        if attempt < attempts:
            time.sleep(delay)
    raise SinkError(f"Store at {url} not available after {attempts} attempts")
