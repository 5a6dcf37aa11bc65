"""
Fault-tolerant fetch of raw responses from the Kubernetes API server.
"""
import logging
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional, TextIO, Tuple, Type, TypeVar
from urllib.parse import quote, urlencode

import requests

from .exceptions import FetchError
from .masking import SENSITIVE_HEADERS, mask_headers
from .stream_provider import StreamProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSPORT_ERRORS: Tuple[Type[BaseException], ...] = (requests.RequestException, OSError)


def build_pods_url(
    base_url: str,
    namespace: str | None = None,
    label_selector: str | None = None,
) -> str:
    """
    Compose ``<base>[/namespaces/<ns>]/pods[?labelSelector=<selector>]``.

    Args:
        base_url: API base URL, e.g. https://host:443/api/v1
        namespace: Namespace path segment (URL-encoded)
        label_selector: Label selector query parameter (URL-encoded)

    Returns:
        Request URL
    """
    url = base_url.rstrip("/")
    if namespace:
        url += f"/namespaces/{quote(namespace, safe='')}"
    url += "/pods"
    if label_selector:
        url += "?" + urlencode({"labelSelector": label_selector})
    return url


@dataclass
class FetchOptions:
    """Timeouts, retry policy and diagnostics for a pod query."""
    connect_timeout: float = 5.0  # seconds
    read_timeout: float = 30.0  # seconds
    max_attempts: int = 3
    sleep_between_attempts: float = 1.0  # seconds
    dump_requests: bool = False
    dump_stream: Optional[TextIO] = field(default=None, repr=False)
    sensitive_headers: frozenset = SENSITIVE_HEADERS

    @classmethod
    def from_settings(cls, settings) -> "FetchOptions":
        """Build options from Settings (millisecond fields)."""
        return cls(
            connect_timeout=settings.KUBERNETES_CONNECT_TIMEOUT / 1000.0,
            read_timeout=settings.KUBERNETES_READ_TIMEOUT / 1000.0,
            max_attempts=settings.KUBERNETES_OPERATION_ATTEMPTS,
            sleep_between_attempts=settings.KUBERNETES_OPERATION_SLEEP / 1000.0,
            dump_requests=settings.KUBERNETES_DUMP_REQUESTS,
        )

    def dump(self, line: str) -> None:
        """Write a diagnostics line when request dumping is enabled."""
        if self.dump_requests:
            print(line, file=self.dump_stream or sys.stdout, flush=True)


class RetryPolicy:
    """Bounded attempts with a fixed sleep in between."""

    def __init__(
        self,
        max_attempts: int,
        sleep_between_attempts: float,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.max_attempts = max_attempts
        self.sleep_between_attempts = sleep_between_attempts
        self._sleep = sleep

    def call(
        self,
        operation: Callable[[], T],
        description: str,
        url: str | None = None,
        retry_on: Tuple[Type[BaseException], ...] = TRANSPORT_ERRORS,
        cancelled: Optional[threading.Event] = None,
    ) -> T:
        """
        Run ``operation`` until it returns or the attempts are used up.

        Args:
            operation: Callable performing one attempt
            description: What is attempted, for messages
            url: Target of the operation, recorded on FetchError
            retry_on: Exception types that count as a failed attempt
            cancelled: When set, no further attempt is started

        Returns:
            Result of the first successful attempt

        Raises:
            FetchError: When no attempt succeeded, carrying the last cause
        """
        last_error: Optional[BaseException] = None
        attempt = 0
        while attempt < self.max_attempts:
            if attempt > 0:
                if cancelled is not None and cancelled.is_set():
                    break
                self._sleep(self.sleep_between_attempts)
                if cancelled is not None and cancelled.is_set():
                    break
            attempt += 1
            try:
                return operation()
            except retry_on as e:
                last_error = e
                logger.debug(f"Attempt {attempt}/{self.max_attempts} of {description} failed: {e}")

        raise FetchError(
            f"Failed {description} after {attempt} attempt(s)",
            url=url,
            attempts=attempt,
            cause=last_error,
        )


class EndpointFetcher:
    """Fetches a URL through a StreamProvider, retrying transport failures."""

    def __init__(
        self,
        stream_provider: StreamProvider,
        options: Optional[FetchOptions] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.stream_provider = stream_provider
        self.options = options or FetchOptions()
        self.retry = RetryPolicy(
            self.options.max_attempts, self.options.sleep_between_attempts, sleep
        )

    def fetch(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        cancelled: Optional[threading.Event] = None,
    ) -> bytes:
        """
        Fetch the body of ``url``.

        Each attempt opens a new stream and reads it to the end. Transport
        failures are retried up to ``max_attempts`` attempts in total, with
        ``sleep_between_attempts`` between them. A successful read is never
        retried, even when the body is empty.

        Args:
            url: Request URL
            headers: Request headers, masked in all diagnostic output
            cancelled: When set, no further attempt is started

        Returns:
            Raw response body

        Raises:
            FetchError: When every attempt failed, carrying the last cause
        """
        headers = dict(headers or {})
        return self.retry.call(
            lambda: self._attempt(url, headers),
            f"fetching {url}",
            url=url,
            cancelled=cancelled,
        )

    def _attempt(self, url: str, headers: Mapping[str, str]) -> bytes:
        opts = self.options
        logger.debug(f"GET {url} headers={mask_headers(headers, opts.sensitive_headers)}")
        opts.dump(f"--> GET {url}")
        try:
            stream = self.stream_provider.open_stream(
                url, headers, opts.connect_timeout, opts.read_timeout
            )
            body = b"".join(stream)
        except TRANSPORT_ERRORS as e:
            opts.dump(f"<-- {type(e).__name__}: {e}")
            raise
        opts.dump(f"<-- {body.decode('utf-8', errors='replace')}")
        return body
