"""
Stream providers used to open connections to the Kubernetes API server.
"""
import logging
import os
import ssl
from abc import ABC, abstractmethod
from typing import Iterator, Mapping, Optional

import requests
from requests.adapters import HTTPAdapter

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


class StreamProvider(ABC):
    """Opens a byte stream for a URL."""

    @abstractmethod
    def open_stream(
        self,
        url: str,
        headers: Mapping[str, str],
        connect_timeout: float,
        read_timeout: float,
    ) -> Iterator[bytes]:
        """
        Open a stream to ``url``.

        Args:
            url: Full request URL; the scheme selects TLS or plain
            headers: Request headers
            connect_timeout: Seconds to wait for the connection
            read_timeout: Seconds to wait between bytes of the response

        Returns:
            Iterator over the response body

        Raises:
            requests.RequestException or OSError on transport failures
        """


class SSLContextAdapter(HTTPAdapter):
    """HTTPAdapter that connects with a prepared SSLContext."""

    def __init__(self, ssl_context: ssl.SSLContext, **kwargs):
        self.ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = self.ssl_context
        return super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, *args, **kwargs):
        kwargs["ssl_context"] = self.ssl_context
        return super().proxy_manager_for(*args, **kwargs)


class RequestsStreamProvider(StreamProvider):
    """Plain or TLS streams over a requests Session, with optional client certificate."""

    def __init__(
        self,
        client_cert_file: str | None = None,
        client_key_file: str | None = None,
        client_key_password: str | None = None,
        client_key_algo: str = "RSA",
        ca_cert_file: str | None = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the provider.

        Args:
            client_cert_file: PEM client certificate (optional)
            client_key_file: PEM private key; defaults to the certificate file
            client_key_password: Password of an encrypted private key
            client_key_algo: Key algorithm, informational for PEM keys
            ca_cert_file: CA bundle to verify the API server; unreadable bundles
                fall back to the default trust store with a warning
            session: Session to use (a new one by default)
        """
        self.client_cert_file = client_cert_file
        self.client_key_file = client_key_file
        self.client_key_password = client_key_password
        self.client_key_algo = client_key_algo
        self.ca_cert_file = ca_cert_file
        self.session = session or requests.Session()
        self._tls_ready = False

    def build_ssl_context(self) -> ssl.SSLContext:
        """Create the SSLContext for https connections."""
        cafile = None
        if self.ca_cert_file:
            if os.access(self.ca_cert_file, os.R_OK):
                cafile = self.ca_cert_file
            else:
                logger.warning(
                    f"CA certificate file {self.ca_cert_file} is not readable; "
                    "using the default trust store"
                )
        context = ssl.create_default_context(cafile=cafile)
        if self.client_cert_file:
            logger.debug(
                f"Loading {self.client_key_algo} client certificate {self.client_cert_file}"
            )
            context.load_cert_chain(
                self.client_cert_file,
                keyfile=self.client_key_file,
                password=self.client_key_password,
            )
        return context

    def _ensure_tls(self) -> None:
        if not self._tls_ready:
            self.session.mount("https://", SSLContextAdapter(self.build_ssl_context()))
            self._tls_ready = True

    def open_stream(self, url, headers, connect_timeout, read_timeout):
        if url.lower().startswith("https://"):
            self._ensure_tls()
        response = self.session.get(
            url,
            headers=dict(headers),
            timeout=(connect_timeout, read_timeout),
            stream=True,
        )
        try:
            response.raise_for_status()
        except requests.HTTPError:
            response.close()
            raise
        return self._iter_body(response)

    @staticmethod
    def _iter_body(response: requests.Response) -> Iterator[bytes]:
        with response:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    yield chunk


def read_token(path: str | None) -> Optional[str]:
    """
    Read a bearer token from a file.

    Returns:
        The stripped token, or None when the file is missing or empty
    """
    if not path:
        return None
    try:
        with open(path, encoding="utf-8") as f:
            token = f.read().strip()
    except OSError as e:
        logger.debug(f"No service account token at {path}: {e}")
        return None
    return token or None
