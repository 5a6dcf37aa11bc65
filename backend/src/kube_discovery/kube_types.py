"""
Type definitions for Kubernetes objects and discovery results.
"""
import ipaddress
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


def normalize_host(host: str) -> str:
    """Canonical text of an IP address; other hosts are returned unchanged."""
    try:
        return str(ipaddress.ip_address(host))
    except ValueError:
        return host


def _text(value: Any, name: str, default: Optional[str] = None) -> Optional[str]:
    if value is None:
        return default
    if not isinstance(value, str):
        raise TypeError(f"'{name}' must be a string, got {type(value).__name__}")
    return value


class ReadinessState(str, Enum):
    """Whether a pod may receive discovery traffic."""
    READY = "ready"
    NOT_READY = "not_ready"


class RoundState(str, Enum):
    """Phases of a discovery round."""
    IDLE = "idle"
    FETCHING = "fetching"
    PARSING = "parsing"
    RESOLVING = "resolving"
    DISPATCHING = "dispatching"


@dataclass(frozen=True)
class ContainerStatus:
    """Readiness of one container in a pod."""
    ready: bool


@dataclass(frozen=True)
class PodCondition:
    """A pod status condition, e.g. type="Ready", status="True"."""
    type: str
    status: str


@dataclass
class PodRecord:
    """Kubernetes Pod representation, normalized from either query path."""
    name: str
    namespace: Optional[str]
    pod_ip: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)
    phase: str = ""
    message: Optional[str] = None
    reason: Optional[str] = None
    container_statuses: List[ContainerStatus] = field(default_factory=list)
    conditions: List[PodCondition] = field(default_factory=list)

    @classmethod
    def from_dict(cls, item: Dict[str, Any]) -> "PodRecord":
        """
        Create from a pod object of a raw ``/pods`` JSON response.

        Missing sub-objects are treated as empty. Raises TypeError or
        AttributeError when the item is not shaped like a pod.
        """
        metadata = item.get("metadata") or {}
        status = item.get("status") or {}
        labels = metadata.get("labels") or {}
        if not isinstance(labels, dict):
            raise TypeError(f"'labels' must be an object, got {type(labels).__name__}")
        return cls(
            name=_text(metadata.get("name"), "name", ""),
            namespace=_text(metadata.get("namespace"), "namespace"),
            pod_ip=_text(status.get("podIP"), "podIP"),
            labels={_text(k, "label"): _text(v, k) for k, v in labels.items()},
            phase=_text(status.get("phase"), "phase", ""),
            message=_text(status.get("message"), "message"),
            reason=_text(status.get("reason"), "reason"),
            container_statuses=[
                ContainerStatus(ready=bool(cs.get("ready", False)))
                for cs in status.get("containerStatuses") or []
            ],
            conditions=[
                PodCondition(
                    type=_text(c.get("type"), "type", ""),
                    status=_text(c.get("status"), "status", ""),
                )
                for c in status.get("conditions") or []
            ],
        )

    @classmethod
    def from_kube_object(cls, pod: Any) -> "PodRecord":
        """Create from a ``kubernetes.client.V1Pod``."""
        metadata = pod.metadata
        status = pod.status
        return cls(
            name=metadata.name or "",
            namespace=metadata.namespace,
            pod_ip=status.pod_ip if status else None,
            labels=dict(metadata.labels or {}),
            phase=(status.phase if status else None) or "",
            message=status.message if status else None,
            reason=status.reason if status else None,
            container_statuses=[
                ContainerStatus(ready=bool(cs.ready))
                for cs in (status.container_statuses if status else None) or []
            ],
            conditions=[
                PodCondition(type=c.type or "", status=c.status or "")
                for c in (status.conditions if status else None) or []
            ],
        )


@dataclass
class Pod:
    """A pod together with its readiness verdict and rolling-update group."""
    record: PodRecord
    readiness: ReadinessState
    group: Optional[str] = None

    @property
    def name(self) -> str:
        return self.record.name

    @property
    def ip(self) -> Optional[str]:
        return self.record.pod_ip

    @property
    def is_ready(self) -> bool:
        return self.readiness is ReadinessState.READY

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "namespace": self.record.namespace,
            "ip": self.ip,
            "group": self.group,
            "ready": self.is_ready,
        }

    def __str__(self) -> str:
        return f"Pod{{name='{self.name}', ip='{self.ip}', podGroup='{self.group}'}}"


@dataclass(frozen=True, order=True)
class PeerEndpoint:
    """Network endpoint of a candidate cluster peer. IP hosts are stored in canonical form."""
    host: str
    port: int

    def __post_init__(self):
        object.__setattr__(self, "host", normalize_host(self.host))

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class DiscoveryRound:
    """Transient record of one discovery round."""
    namespace: Optional[str]
    label_selector: Optional[str]
    state: RoundState = RoundState.IDLE
    fetched_at: Optional[datetime] = None
    pods: List[Pod] = field(default_factory=list)
    endpoints: frozenset = frozenset()
    failure: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.failure is None
