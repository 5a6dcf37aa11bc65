"""
Resolution of pods into candidate peer endpoints.
"""
import ipaddress
import logging
from typing import Iterable, List, Optional, Set

from .kube_types import PeerEndpoint, Pod

logger = logging.getLogger(__name__)


def same_group_pods(pods: Iterable[Pod], local_pod_name: Optional[str]) -> List[Pod]:
    """
    Restrict pods to the rolling-update group of the local pod.

    When the local pod has no group, only pods without a group are kept.
    When the local pod is not in the list, the pods are returned unfiltered.
    """
    pods = list(pods)
    for pod in pods:
        if pod.name == local_pod_name:
            local_group = pod.group
            break
    else:
        logger.warning(
            f"Local pod {local_pod_name} not found; not splitting clusters by rolling-update group"
        )
        return pods
    return [pod for pod in pods if pod.group == local_group]


class PeerAddressResolver:
    """Expands pods into deduplicated peer endpoints over a port range."""

    def __init__(self, use_not_ready_addresses: bool = False):
        """
        Args:
            use_not_ready_addresses: Also target pods that are not ready
        """
        self.use_not_ready_addresses = use_not_ready_addresses

    def resolve(
        self,
        pods: Iterable[Pod],
        base_port: int,
        port_range: int,
        self_address: Optional[PeerEndpoint] = None,
    ) -> Set[PeerEndpoint]:
        """
        Resolve pods into endpoints.

        Every eligible pod with an IP yields ``(ip, base_port + i)`` for
        ``i`` in ``0..port_range``; the local endpoint is never included.

        Args:
            pods: Parsed pods
            base_port: Transport port of every member
            port_range: Number of additional ports to target
            self_address: Endpoint of this process

        Returns:
            Set of endpoints to send discovery requests to
        """
        endpoints: Set[PeerEndpoint] = set()
        for pod in pods:
            if not pod.is_ready and not self.use_not_ready_addresses:
                continue
            if not pod.ip:
                continue
            try:
                ipaddress.ip_address(pod.ip)
            except ValueError as e:
                logger.warning(f"Failed translating host {pod} into an address: {e}")
                continue
            for offset in range(port_range + 1):
                endpoints.add(PeerEndpoint(pod.ip, base_port + offset))

        if self_address is not None:
            endpoints.discard(self_address)
        return endpoints
