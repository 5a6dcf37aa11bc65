from .config import Settings, check_deprecated_properties
from .coordinator import DiscoveryRoundCoordinator, RoundConfig
from .discovery import KubeDiscovery
from .exceptions import (
    ConfigurationError, DiscoveryError, DispatchError, FetchError, ParseError
)
from .fetcher import EndpointFetcher, FetchOptions, RetryPolicy, build_pods_url
from .kube_client import KubeClient, PodSource, RestPodSource, select_pod_source
from .kube_types import (
    DiscoveryRound, Pod, PodRecord, PeerEndpoint, ReadinessState, RoundState
)
from .masking import mask_headers, mask_value
from .pod_parser import PodInventoryParser, evaluate_readiness, pod_group
from .resolver import PeerAddressResolver
from .stream_provider import RequestsStreamProvider, StreamProvider

__all__ = [
    "Settings", "check_deprecated_properties",
    "DiscoveryRoundCoordinator", "RoundConfig", "KubeDiscovery",
    "ConfigurationError", "DiscoveryError", "DispatchError", "FetchError", "ParseError",
    "EndpointFetcher", "FetchOptions", "RetryPolicy", "build_pods_url",
    "KubeClient", "PodSource", "RestPodSource", "select_pod_source",
    "DiscoveryRound", "Pod", "PodRecord", "PeerEndpoint", "ReadinessState", "RoundState",
    "mask_headers", "mask_value",
    "PodInventoryParser", "evaluate_readiness", "pod_group",
    "PeerAddressResolver",
    "RequestsStreamProvider", "StreamProvider",
]
