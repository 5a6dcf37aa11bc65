"""
Kubernetes-based discovery of cluster peers.

Asks the Kubernetes API server for the pods of a namespace, then targets
each ready pod on the transport port plus PORT_RANGE additional ports.
"""
import logging
import threading
import time
from typing import Callable, Optional, Set

from .config import Settings, check_deprecated_properties
from .coordinator import DiscoveryRoundCoordinator, Dispatcher, RoundConfig
from .kube_client import PodSource, select_pod_source
from .kube_types import DiscoveryRound, PeerEndpoint
from .pod_parser import PodInventoryParser
from .resolver import PeerAddressResolver

logger = logging.getLogger(__name__)


class KubeDiscovery:
    """Discovery protocol for one member, configured from Settings."""

    def __init__(
        self,
        settings: Settings,
        dispatcher: Optional[Dispatcher] = None,
        pod_source: Optional[PodSource] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.dispatcher = dispatcher
        self.pod_source = pod_source
        self.coordinator: Optional[DiscoveryRoundCoordinator] = None
        self.local_address: Optional[PeerEndpoint] = settings.local_endpoint
        self._sleep = sleep

    @property
    def clustering_enabled(self) -> bool:
        return self.settings.clustering_enabled and self.coordinator is not None

    def init(self) -> None:
        """
        Validate settings and build the discovery pipeline.

        Raises:
            ConfigurationError: If the settings cannot support discovery
        """
        self.settings.validate_discovery()
        check_deprecated_properties()

        if not self.settings.clustering_enabled:
            logger.warning("namespace not set; clustering disabled")
            return
        logger.info(f"namespace {self.settings.KUBERNETES_NAMESPACE} set; clustering enabled")

        if self.pod_source is None:
            self.pod_source = select_pod_source(self.settings, sleep=self._sleep)
        self.coordinator = DiscoveryRoundCoordinator(
            self.pod_source,
            parser=PodInventoryParser(),
            resolver=PeerAddressResolver(self.settings.KUBERNETES_USE_NOT_READY_ADDRESSES),
            dispatcher=self.dispatcher,
        )
        logger.info(f"KubePING configuration: {self}")
        logger.debug(f"Settings: {self.settings.masked_dump()}")

    def local_address_set(self, address: PeerEndpoint) -> None:
        self.local_address = address
        logger.info(f"Local address set to {address}")

    def round_config(self) -> RoundConfig:
        return RoundConfig.from_settings(self.settings, self_address=self.local_address)

    def resolve(self, cancelled: Optional[threading.Event] = None) -> DiscoveryRound:
        """Run a round without sending requests."""
        if not self.clustering_enabled:
            return DiscoveryRound(namespace=None, label_selector=self.settings.KUBERNETES_LABELS)
        return self.coordinator.resolve_round(
            self.settings.KUBERNETES_NAMESPACE,
            self.settings.KUBERNETES_LABELS,
            self.round_config(),
            cancelled,
        )

    def send_get_members_request(self, cancelled: Optional[threading.Event] = None) -> Set[PeerEndpoint]:
        """Run a round and send a discovery request to every endpoint found."""
        if not self.clustering_enabled:
            return set()
        return self.coordinator.run_round(
            self.settings.KUBERNETES_NAMESPACE,
            self.settings.KUBERNETES_LABELS,
            self.round_config(),
            cancelled,
        )

    def fetch_from_kube(self) -> str:
        """Ask Kubernetes for the pods of the namespace, formatted for operators."""
        discovery_round = self.resolve()
        return "[" + ", ".join(str(pod) for pod in discovery_round.pods) + "]"

    def __str__(self) -> str:
        return (
            f"KubePing{{namespace='{self.settings.KUBERNETES_NAMESPACE}', "
            f"labels='{self.settings.KUBERNETES_LABELS}'}}"
        )
