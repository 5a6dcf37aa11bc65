"""
Parsing of pod inventories into readiness verdicts and rolling-update groups.

A pod is ready only when every check in READINESS_CHECKS passes. Checks run
in order and stop at the first failure.
"""
import json
import logging
from typing import Callable, Iterable, List, Optional, Tuple, Union

from .exceptions import ParseError
from .kube_types import Pod, PodRecord, ReadinessState

logger = logging.getLogger(__name__)

# Label keys identifying a Deployment or StatefulSet generation, highest priority first
GROUP_LABELS = ("pod-template-hash", "deployment", "controller-revision-hash")


def phase_is_running(record: PodRecord) -> bool:
    return record.phase.lower() == "running"


def message_absent(record: PodRecord) -> bool:
    return record.message is None


def reason_absent(record: PodRecord) -> bool:
    return record.reason is None


def containers_ready(record: PodRecord) -> bool:
    # No container statuses passes
    return all(cs.ready for cs in record.container_statuses)


def ready_condition_true(record: PodRecord) -> bool:
    ready = False
    for condition in record.conditions:
        if condition.type.lower() == "ready":
            ready = condition.status.lower() == "true"
    return ready


READINESS_CHECKS: List[Tuple[str, Callable[[PodRecord], bool]]] = [
    ("phase_is_running", phase_is_running),
    ("message_absent", message_absent),
    ("reason_absent", reason_absent),
    ("containers_ready", containers_ready),
    ("ready_condition_true", ready_condition_true),
]


def failed_readiness_check(record: PodRecord) -> Optional[str]:
    """Name of the first failing readiness check, or None if the pod is ready."""
    for name, check in READINESS_CHECKS:
        if not check(record):
            return name
    return None


def evaluate_readiness(record: PodRecord) -> ReadinessState:
    if failed_readiness_check(record) is None:
        return ReadinessState.READY
    return ReadinessState.NOT_READY


def pod_group(record: PodRecord) -> Optional[str]:
    """Rolling-update group of a pod from its labels, or None."""
    for key in GROUP_LABELS:
        if key in record.labels:
            return record.labels[key]
    return None


class PodInventoryParser:
    """Turns pod inventories into Pod verdicts for one namespace."""

    def decode(self, raw: Union[bytes, str, dict]) -> List[PodRecord]:
        """
        Decode a ``/pods`` JSON response into pod records.

        Args:
            raw: Response body, or an already decoded document

        Returns:
            Records of the ``items`` array, in response order

        Raises:
            ParseError: If the body is not a pod list
        """
        try:
            document = json.loads(raw) if isinstance(raw, (bytes, str)) else raw
        except ValueError as e:
            raise ParseError(f"Response is not valid JSON: {e}", cause=e) from e
        if not isinstance(document, dict):
            raise ParseError(f"Expected a JSON object, got {type(document).__name__}")

        items = document.get("items")
        if items is None:
            return []
        if not isinstance(items, list):
            raise ParseError(f"Expected 'items' to be a list, got {type(items).__name__}")
        try:
            return [PodRecord.from_dict(item) for item in items]
        except (AttributeError, TypeError, ValueError) as e:
            raise ParseError(f"Malformed pod object: {e}", cause=e) from e

    def evaluate(self, records: Iterable[PodRecord], target_namespace: str) -> List[Pod]:
        """
        Compute readiness and group for each record in ``target_namespace``.

        Records of other namespaces are dropped.
        """
        pods = []
        for record in records:
            if record.namespace != target_namespace:
                continue
            failed = failed_readiness_check(record)
            readiness = ReadinessState.READY if failed is None else ReadinessState.NOT_READY
            if failed:
                logger.debug(f"Pod {record.name} is not ready: {failed} failed")
            pods.append(Pod(record=record, readiness=readiness, group=pod_group(record)))
        return pods

    def parse(self, raw: Union[bytes, str, dict], target_namespace: str) -> List[Pod]:
        """Decode a raw response and evaluate it for ``target_namespace``."""
        return self.evaluate(self.decode(raw), target_namespace)
