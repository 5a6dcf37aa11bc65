"""Tests for pod readiness, rolling-update groups and inventory decoding."""

import json

import pytest

from conftest import make_pod
from kube_discovery import pod_parser
from kube_discovery.exceptions import ParseError
from kube_discovery.kube_types import ContainerStatus, PodCondition, PodRecord, ReadinessState
from kube_discovery.pod_parser import (
    PodInventoryParser,
    evaluate_readiness,
    failed_readiness_check,
    pod_group,
)


def record(**kwargs):
    return PodRecord.from_dict(make_pod(**kwargs))


class TestReadiness:
    """Tests for the readiness checks."""

    def test_running_pod_is_ready(self):
        assert evaluate_readiness(record()) is ReadinessState.READY

    def test_phase_is_case_insensitive(self):
        assert evaluate_readiness(record(phase="RUNNING")) is ReadinessState.READY

    @pytest.mark.parametrize("phase", ["Pending", "Succeeded", "Failed", "Unknown", ""])
    def test_not_running_phase_is_not_ready(self, phase):
        assert evaluate_readiness(record(phase=phase)) is ReadinessState.NOT_READY
        assert failed_readiness_check(record(phase=phase)) == "phase_is_running"

    def test_message_makes_pod_not_ready(self):
        pod = record(message="The node was low on resource: memory.")
        assert evaluate_readiness(pod) is ReadinessState.NOT_READY
        assert failed_readiness_check(pod) == "message_absent"

    def test_reason_makes_pod_not_ready(self):
        pod = record(reason="Evicted")
        assert evaluate_readiness(pod) is ReadinessState.NOT_READY
        assert failed_readiness_check(pod) == "reason_absent"

    def test_empty_container_statuses_with_ready_condition(self):
        pod = record(container_ready=())
        assert pod.container_statuses == []
        assert evaluate_readiness(pod) is ReadinessState.READY

    def test_any_container_not_ready(self):
        pod = record(container_ready=(True, False))
        assert evaluate_readiness(pod) is ReadinessState.NOT_READY
        assert failed_readiness_check(pod) == "containers_ready"

    def test_ready_condition_false(self):
        pod = record(ready_status="False")
        assert evaluate_readiness(pod) is ReadinessState.NOT_READY
        assert failed_readiness_check(pod) == "ready_condition_true"

    def test_ready_condition_is_case_insensitive(self):
        pod = PodRecord(
            name="a",
            namespace="default",
            phase="Running",
            container_statuses=[ContainerStatus(ready=True)],
            conditions=[PodCondition(type="READY", status="true")],
        )
        assert evaluate_readiness(pod) is ReadinessState.READY

    def test_missing_ready_condition_is_not_ready(self):
        pod = PodRecord(name="a", namespace="default", phase="Running")
        assert evaluate_readiness(pod) is ReadinessState.NOT_READY

    def test_checks_short_circuit(self, monkeypatch):
        calls = []

        def spy(name, result):
            def check(record):
                calls.append(name)
                return result
            return check

        monkeypatch.setattr(
            pod_parser,
            "READINESS_CHECKS",
            [("first", spy("first", True)), ("second", spy("second", False)), ("third", spy("third", True))],
        )

        assert failed_readiness_check(record()) == "second"
        assert calls == ["first", "second"]

    def test_readiness_ignores_other_pods(self):
        good = record(name="a")
        bad = record(name="b", phase="Failed")
        assert evaluate_readiness(good) is ReadinessState.READY
        assert evaluate_readiness(bad) is ReadinessState.NOT_READY
        assert evaluate_readiness(good) is ReadinessState.READY


class TestPodGroup:
    """Tests for rolling-update group derivation."""

    def test_pod_template_hash_wins_over_deployment(self):
        pod = record(labels={"deployment": "app-1", "pod-template-hash": "5d4f8c"})
        assert pod_group(pod) == "5d4f8c"

    def test_deployment_wins_over_controller_revision_hash(self):
        pod = record(labels={"controller-revision-hash": "app-7b9", "deployment": "app-2"})
        assert pod_group(pod) == "app-2"

    def test_controller_revision_hash(self):
        pod = record(labels={"controller-revision-hash": "app-7b9"})
        assert pod_group(pod) == "app-7b9"

    def test_no_group_labels(self):
        assert pod_group(record(labels={"app": "demo"})) is None


class TestPodInventoryParser:
    """Tests for PodInventoryParser."""

    def test_parse_filters_namespace(self):
        body = json.dumps({
            "items": [
                make_pod(name="a", namespace="default"),
                make_pod(name="b", namespace="other"),
            ]
        }).encode()

        pods = PodInventoryParser().parse(body, "default")

        assert [p.name for p in pods] == ["a"]
        assert pods[0].is_ready

    def test_parse_computes_group(self):
        body = json.dumps({"items": [make_pod(labels={"pod-template-hash": "abc"})]})
        pods = PodInventoryParser().parse(body, "default")
        assert pods[0].group == "abc"

    def test_pod_without_ip_is_kept_with_no_ip(self):
        pods = PodInventoryParser().parse({"items": [make_pod(ip=None)]}, "default")
        assert pods[0].ip is None

    def test_missing_items_is_empty(self):
        assert PodInventoryParser().parse(b'{"kind": "PodList"}', "default") == []

    def test_partial_record(self):
        pods = PodInventoryParser().parse(
            {"items": [{"metadata": {"name": "x", "namespace": "default"}}]}, "default"
        )
        assert pods[0].readiness is ReadinessState.NOT_READY
        assert pods[0].group is None

    @pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b'{"items": 3}', b'{"items": ["x"]}'])
    def test_malformed_body_raises_parse_error(self, body):
        with pytest.raises(ParseError):
            PodInventoryParser().decode(body)

    @pytest.mark.parametrize(
        "item",
        [
            {"metadata": {"name": "a", "namespace": "default"}, "status": {"phase": 5}},
            {"metadata": {"name": "a", "namespace": "default", "labels": ["app"]}},
            {"metadata": {"name": "a", "namespace": "default", "labels": {"app": 1}}},
            {"metadata": {"name": 7, "namespace": "default"}},
            {"metadata": {"name": "a", "namespace": "default"}, "status": {"podIP": 10}},
            {
                "metadata": {"name": "a", "namespace": "default"},
                "status": {"conditions": [{"type": 1, "status": "True"}]},
            },
        ],
    )
    def test_wrongly_typed_fields_raise_parse_error(self, item):
        with pytest.raises(ParseError):
            PodInventoryParser().parse(json.dumps({"items": [item]}), "default")

    def test_parse_is_deterministic(self):
        body = json.dumps({"items": [make_pod(name="a"), make_pod(name="b", phase="Pending")]})
        parser = PodInventoryParser()
        first = [p.to_dict() for p in parser.parse(body, "default")]
        second = [p.to_dict() for p in parser.parse(body, "default")]
        assert first == second
