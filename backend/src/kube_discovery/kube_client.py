"""
Pod sources: the Kubernetes client library, or raw HTTP against the API server.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from .exceptions import ConfigurationError
from .fetcher import EndpointFetcher, FetchOptions, RetryPolicy, build_pods_url
from .kube_types import PodRecord
from .pod_parser import PodInventoryParser
from .stream_provider import RequestsStreamProvider, read_token

logger = logging.getLogger(__name__)

CLIENT_ERRORS = (ApiException, urllib3.exceptions.HTTPError, OSError)


class PodSource(ABC):
    """Lists the pods matching a label selector."""

    @abstractmethod
    def query(
        self,
        namespace: str,
        label_selector: str | None = None,
        cancelled: Optional[threading.Event] = None,
    ) -> List[PodRecord]:
        """
        Query pods.

        The result may include pods of other namespaces; callers filter.

        Raises:
            FetchError: When the query failed after all attempts
            ParseError: When the response could not be decoded
        """


class KubeClient(PodSource):
    """Kubernetes client for pod discovery."""

    def __init__(
        self,
        in_cluster: bool | None = None,
        context: str | None = None,
        options: Optional[FetchOptions] = None,
        sleep: Callable[[float], None] = time.sleep,
        api: Optional[client.CoreV1Api] = None,
    ):
        """
        Initialize Kubernetes client.

        Args:
            in_cluster: True for in-cluster config, False for kubeconfig,
                None to try in-cluster first and then kubeconfig
            context: Kubernetes context name (optional)
            options: Timeouts, retry policy and diagnostics
            sleep: Sleep function used between attempts
            api: Preconfigured CoreV1Api (skips configuration loading)
        """
        self.in_cluster = in_cluster
        self.parser = PodInventoryParser()
        self.options = options or FetchOptions()
        self.retry = RetryPolicy(
            self.options.max_attempts, self.options.sleep_between_attempts, sleep
        )

        if api is not None:
            self.v1 = api
            return

        try:
            if in_cluster is None:
                try:
                    config.load_incluster_config()
                    self.in_cluster = True
                except ConfigException:
                    self._load_kube_config(context)
                    self.in_cluster = False
            elif in_cluster:
                config.load_incluster_config()
            else:
                self._load_kube_config(context)

            self.v1 = client.CoreV1Api()
            logger.info(f"✅ Kubernetes client initialized (in_cluster={self.in_cluster})")

        except Exception as e:
            logger.error(f"❌ Failed to initialize Kubernetes client: {e}")
            raise

    @staticmethod
    def _load_kube_config(context: str | None) -> None:
        if context:
            config.load_kube_config(context=context)
        else:
            config.load_kube_config()

    def query(self, namespace, label_selector=None, cancelled=None):
        """
        List pods across all namespaces with the client library.

        Args:
            namespace: Target namespace, for messages only
            label_selector: Optional label selector for filtering
            cancelled: When set, no further attempt is started

        Returns:
            List of PodRecord objects
        """
        opts = self.options

        def list_pods():
            opts.dump(f"--> list_pod_for_all_namespaces(label_selector={label_selector!r})")
            try:
                response = self.v1.list_pod_for_all_namespaces(
                    label_selector=label_selector,
                    _request_timeout=(opts.connect_timeout, opts.read_timeout),
                    _preload_content=not opts.dump_requests,
                )
            except CLIENT_ERRORS as e:
                opts.dump(f"<-- {type(e).__name__}: {e}")
                raise
            if opts.dump_requests:
                # Unparsed urllib3 response: dump the literal body, then decode it
                raw = response.data
                opts.dump(f"<-- {raw.decode('utf-8', errors='replace')}")
                return self.parser.decode(raw)
            return [PodRecord.from_kube_object(pod) for pod in response.items or []]

        records = self.retry.call(
            list_pods,
            f"listing pods for namespace {namespace} with labels {label_selector}",
            retry_on=CLIENT_ERRORS,
            cancelled=cancelled,
        )
        logger.debug(f"Retrieved {len(records)} pods matching labels {label_selector}")
        return records


class RestPodSource(PodSource):
    """Queries ``/pods`` over HTTP and decodes the JSON response."""

    def __init__(
        self,
        fetcher: EndpointFetcher,
        base_url: str,
        token_file: str | None = None,
        parser: Optional[PodInventoryParser] = None,
    ):
        """
        Args:
            fetcher: Fetcher used for the request
            base_url: API base URL, e.g. https://host:443/api/v1
            token_file: Bearer token file, read on every query
            parser: Decoder for the response
        """
        self.fetcher = fetcher
        self.base_url = base_url
        self.token_file = token_file
        self.parser = parser or PodInventoryParser()

    def headers(self) -> dict:
        headers = {"Accept": "application/json"}
        token = read_token(self.token_file)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def query(self, namespace, label_selector=None, cancelled=None):
        url = build_pods_url(self.base_url, namespace, label_selector)
        raw = self.fetcher.fetch(url, self.headers(), cancelled=cancelled)
        return self.parser.decode(raw)


def build_rest_source(settings, sleep: Callable[[float], None] = time.sleep) -> RestPodSource:
    """Raw HTTP pod source configured from Settings."""
    provider = RequestsStreamProvider(
        client_cert_file=settings.KUBERNETES_CLIENT_CERTIFICATE_FILE,
        client_key_file=settings.KUBERNETES_CLIENT_KEY_FILE,
        client_key_password=settings.KUBERNETES_CLIENT_KEY_PASSWORD,
        client_key_algo=settings.KUBERNETES_CLIENT_KEY_ALGO,
        ca_cert_file=settings.KUBERNETES_CA_CERTIFICATE_FILE,
    )
    fetcher = EndpointFetcher(provider, FetchOptions.from_settings(settings), sleep=sleep)
    return RestPodSource(fetcher, settings.api_base_url, token_file=settings.SA_TOKEN_FILE)


def select_pod_source(settings, sleep: Callable[[float], None] = time.sleep) -> PodSource:
    """
    Pick the pod source for the configured query strategy.

    ``client`` requires a loadable Kubernetes configuration, ``http`` always
    uses raw HTTP, ``auto`` prefers the client and falls back to raw HTTP.

    Raises:
        ConfigurationError: If ``client`` is forced and no configuration loads
    """
    strategy = settings.KUBERNETES_QUERY_STRATEGY
    if strategy == "http":
        return build_rest_source(settings, sleep)

    try:
        return KubeClient(options=FetchOptions.from_settings(settings), sleep=sleep)
    except (ConfigException, OSError) as e:
        if strategy == "client":
            raise ConfigurationError(f"Kubernetes client configuration unavailable: {e}", cause=e) from e
        logger.warning(
            f"⚠️ Kubernetes client unavailable ({e}); querying {settings.api_base_url} over HTTP"
        )
        return build_rest_source(settings, sleep)
