import pytest

from kube_discovery.kube_client import PodSource
from kube_discovery.kube_types import PodRecord
from kube_discovery.stream_provider import StreamProvider


def make_pod(
    name="app-0",
    namespace="default",
    ip="10.0.0.1",
    phase="Running",
    labels=None,
    message=None,
    reason=None,
    container_ready=(True,),
    ready_status="True",
):
    """Pod object shaped like an item of a /pods JSON response."""
    status = {
        "phase": phase,
        "containerStatuses": [{"ready": r} for r in container_ready],
        "conditions": [
            {"type": "Initialized", "status": "True"},
            {"type": "Ready", "status": ready_status},
        ],
    }
    if ip is not None:
        status["podIP"] = ip
    if message is not None:
        status["message"] = message
    if reason is not None:
        status["reason"] = reason
    return {
        "metadata": {"name": name, "namespace": namespace, "labels": labels or {"app": "demo"}},
        "status": status,
    }


class FakeStreamProvider(StreamProvider):
    """Returns queued bodies, or raises queued exceptions, one per call."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def open_stream(self, url, headers, connect_timeout, read_timeout):
        self.calls.append(
            {"url": url, "headers": dict(headers), "timeouts": (connect_timeout, read_timeout)}
        )
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return iter([outcome[:3], outcome[3:]])


class FakePodSource(PodSource):
    """Returns the same records on every query, or raises."""

    def __init__(self, items=(), error=None):
        self.records = [PodRecord.from_dict(item) for item in items]
        self.error = error
        self.queries = []

    def query(self, namespace, label_selector=None, cancelled=None):
        self.queries.append((namespace, label_selector))
        if self.error is not None:
            raise self.error
        return list(self.records)


@pytest.fixture
def ready_pods():
    return [
        make_pod(name="app-0", ip="10.0.0.1"),
        make_pod(name="app-1", ip="10.0.0.2"),
    ]
