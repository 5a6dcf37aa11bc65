"""
Discovery rounds: fetch pods, evaluate them, resolve endpoints and dispatch requests.
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set

from .exceptions import DispatchError, FetchError, ParseError
from .kube_client import PodSource
from .kube_types import DiscoveryRound, PeerEndpoint, RoundState
from .pod_parser import PodInventoryParser
from .resolver import PeerAddressResolver, same_group_pods

logger = logging.getLogger(__name__)

Dispatcher = Callable[[PeerEndpoint], None]


@dataclass
class RoundConfig:
    """Per-round inputs of endpoint resolution."""
    base_port: int
    port_range: int = 1
    self_address: Optional[PeerEndpoint] = None
    split_clusters_during_rolling_update: bool = False
    local_pod_name: Optional[str] = None

    @classmethod
    def from_settings(cls, settings, self_address: Optional[PeerEndpoint] = None) -> "RoundConfig":
        return cls(
            base_port=settings.BIND_PORT,
            port_range=settings.PORT_RANGE,
            self_address=self_address or settings.local_endpoint,
            split_clusters_during_rolling_update=settings.KUBERNETES_SPLIT_CLUSTERS_DURING_ROLLING_UPDATE,
            local_pod_name=settings.KUBERNETES_POD_NAME,
        )


class DiscoveryRoundCoordinator:
    """Runs discovery rounds. Rounds share no mutable state and never raise."""

    def __init__(
        self,
        pod_source: PodSource,
        parser: Optional[PodInventoryParser] = None,
        resolver: Optional[PeerAddressResolver] = None,
        dispatcher: Optional[Dispatcher] = None,
    ):
        """
        Args:
            pod_source: Where pods are queried from
            parser: Readiness and group evaluation
            resolver: Endpoint resolution
            dispatcher: Sends one discovery request to an endpoint
        """
        self.pod_source = pod_source
        self.parser = parser or PodInventoryParser()
        self.resolver = resolver or PeerAddressResolver()
        self.dispatcher = dispatcher

    def resolve_round(
        self,
        namespace: str | None,
        label_selector: str | None,
        config: RoundConfig,
        cancelled: Optional[threading.Event] = None,
    ) -> DiscoveryRound:
        """
        Fetch, parse and resolve without dispatching.

        Returns:
            The round; on failure ``endpoints`` is empty and ``failure`` is set
        """
        discovery_round = DiscoveryRound(namespace=namespace, label_selector=label_selector)
        if not namespace:
            logger.debug("Namespace not set; clustering disabled")
            return discovery_round

        try:
            discovery_round.state = RoundState.FETCHING
            discovery_round.fetched_at = datetime.now(timezone.utc)
            records = self.pod_source.query(namespace, label_selector, cancelled=cancelled)

            discovery_round.state = RoundState.PARSING
            pods = self.parser.evaluate(records, namespace)
            discovery_round.pods = pods
            logger.info(
                f"getPods({namespace}, {label_selector}) = [{', '.join(str(p) for p in pods)}]"
            )

            discovery_round.state = RoundState.RESOLVING
            if config.split_clusters_during_rolling_update:
                pods = same_group_pods(pods, config.local_pod_name)
            discovery_round.endpoints = frozenset(
                self.resolver.resolve(pods, config.base_port, config.port_range, config.self_address)
            )
        except (FetchError, ParseError) as e:
            logger.warning(
                f"Failed getting JSON response from Kubernetes namespace [{namespace}], "
                f"labels [{label_selector}]; encountered [{type(e).__name__}: {e}]"
            )
            discovery_round.failure = e
            discovery_round.endpoints = frozenset()
        except Exception as e:
            logger.exception(f"Unexpected error in discovery round for namespace {namespace}")
            discovery_round.failure = e
            discovery_round.endpoints = frozenset()
        finally:
            discovery_round.state = RoundState.IDLE
        return discovery_round

    def run_round(
        self,
        namespace: str | None,
        label_selector: str | None,
        config: RoundConfig,
        cancelled: Optional[threading.Event] = None,
    ) -> Set[PeerEndpoint]:
        """
        Run one discovery round and send a request to every resolved endpoint.

        Returns:
            The resolved endpoints; empty when the round failed
        """
        discovery_round = self.resolve_round(namespace, label_selector, config, cancelled)
        endpoints = set(discovery_round.endpoints)
        if endpoints and self.dispatcher is not None:
            if cancelled is not None and cancelled.is_set():
                logger.debug("Round abandoned before dispatch")
            else:
                discovery_round.state = RoundState.DISPATCHING
                self.dispatch(endpoints, config.self_address)
                discovery_round.state = RoundState.IDLE
        return endpoints

    def dispatch(self, endpoints: Set[PeerEndpoint], local_address=None) -> List[DispatchError]:
        """
        Send one discovery request per endpoint.

        A failing endpoint is logged and skipped.

        Returns:
            The failures, one per endpoint that could not be sent to
        """
        targets = sorted(endpoints)
        logger.info(
            f"{local_address}: sending discovery requests to [{', '.join(str(t) for t in targets)}]"
        )
        failures = []
        for endpoint in targets:
            try:
                self.dispatcher(endpoint)
            except Exception as e:
                error = e if isinstance(e, DispatchError) else DispatchError(
                    f"Sending discovery request to {endpoint} failed", endpoint=endpoint, cause=e
                )
                logger.warning(f"Sending discovery request to {endpoint} failed: {e}")
                failures.append(error)
        return failures
