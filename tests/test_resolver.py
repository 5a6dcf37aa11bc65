"""Tests for peer endpoint resolution."""

from conftest import make_pod
from kube_discovery.kube_types import PeerEndpoint, Pod, PodRecord, ReadinessState
from kube_discovery.pod_parser import PodInventoryParser
from kube_discovery.resolver import PeerAddressResolver, same_group_pods


def parse(*items):
    return PodInventoryParser().evaluate([PodRecord.from_dict(i) for i in items], "default")


class TestPeerAddressResolver:
    """Tests for PeerAddressResolver."""

    def test_range_expanded_and_self_excluded(self, ready_pods):
        pods = parse(*ready_pods)

        endpoints = PeerAddressResolver().resolve(
            pods, base_port=7800, port_range=1, self_address=PeerEndpoint("10.0.0.1", 7800)
        )

        assert endpoints == {
            PeerEndpoint("10.0.0.1", 7801),
            PeerEndpoint("10.0.0.2", 7800),
            PeerEndpoint("10.0.0.2", 7801),
        }

    def test_port_range_zero(self, ready_pods):
        endpoints = PeerAddressResolver().resolve(parse(*ready_pods), 7800, 0)
        assert endpoints == {PeerEndpoint("10.0.0.1", 7800), PeerEndpoint("10.0.0.2", 7800)}

    def test_ipv6_self_excluded_across_spellings(self):
        pods = parse(make_pod(name="a", ip="fd00::1"))
        endpoints = PeerAddressResolver().resolve(
            pods, 7800, 0, self_address=PeerEndpoint("fd00:0:0:0:0:0:0:1", 7800)
        )
        assert endpoints == set()

    def test_ipv6_pod_ip_is_normalized(self):
        pods = parse(make_pod(name="a", ip="FD00:0:0:0:0:0:0:2"))
        assert PeerAddressResolver().resolve(pods, 7800, 0) == {PeerEndpoint("fd00::2", 7800)}

    def test_duplicate_ips_deduplicated(self):
        pods = parse(make_pod(name="a", ip="10.0.0.5"), make_pod(name="b", ip="10.0.0.5"))
        endpoints = PeerAddressResolver().resolve(pods, 7800, 2)
        assert len(endpoints) == 3

    def test_not_ready_pods_excluded(self):
        pods = parse(make_pod(name="a", ip="10.0.0.1"), make_pod(name="b", ip="10.0.0.2", phase="Pending"))
        endpoints = PeerAddressResolver().resolve(pods, 7800, 0)
        assert endpoints == {PeerEndpoint("10.0.0.1", 7800)}

    def test_not_ready_pods_included_when_enabled(self):
        pods = parse(make_pod(name="a", ip="10.0.0.1"), make_pod(name="b", ip="10.0.0.2", phase="Pending"))
        endpoints = PeerAddressResolver(use_not_ready_addresses=True).resolve(pods, 7800, 0)
        assert endpoints == {PeerEndpoint("10.0.0.1", 7800), PeerEndpoint("10.0.0.2", 7800)}

    def test_pod_without_ip_never_yields_endpoint(self):
        pods = parse(make_pod(name="a", ip=None), make_pod(name="b", ip=""))
        assert PeerAddressResolver(use_not_ready_addresses=True).resolve(pods, 7800, 1) == set()

    def test_invalid_ip_skipped(self, caplog):
        pods = parse(make_pod(name="a", ip="not-an-ip"), make_pod(name="b", ip="10.0.0.2"))
        endpoints = PeerAddressResolver().resolve(pods, 7800, 0)
        assert endpoints == {PeerEndpoint("10.0.0.2", 7800)}
        assert "Failed translating host" in caplog.text

    def test_resolve_is_idempotent(self, ready_pods):
        pods = parse(*ready_pods)
        resolver = PeerAddressResolver()
        assert resolver.resolve(pods, 7800, 1) == resolver.resolve(pods, 7800, 1)


class TestSameGroupPods:
    """Tests for rolling-update group filtering."""

    def pod(self, name, group):
        return Pod(PodRecord(name=name, namespace="default"), ReadinessState.READY, group)

    def test_keeps_local_group(self):
        pods = [self.pod("old-1", "v1"), self.pod("new-1", "v2"), self.pod("new-2", "v2")]
        assert [p.name for p in same_group_pods(pods, "new-1")] == ["new-1", "new-2"]

    def test_unknown_local_pod_skips_split(self, caplog):
        pods = [self.pod("a", None), self.pod("b", "v2")]

        assert [p.name for p in same_group_pods(pods, "missing")] == ["a", "b"]
        assert "Local pod missing not found" in caplog.text


class TestPeerEndpoint:
    """Tests for PeerEndpoint."""

    def test_value_equality(self):
        assert PeerEndpoint("10.0.0.1", 7800) == PeerEndpoint("10.0.0.1", 7800)
        assert len({PeerEndpoint("10.0.0.1", 7800), PeerEndpoint("10.0.0.1", 7800)}) == 1

    def test_str(self):
        assert str(PeerEndpoint("10.0.0.1", 7800)) == "10.0.0.1:7800"

    def test_ipv6_host_is_normalized(self):
        assert PeerEndpoint("fd00:0:0:0:0:0:0:1", 7800).host == "fd00::1"
        assert PeerEndpoint("FD00::1", 7800) == PeerEndpoint("fd00::1", 7800)

    def test_hostname_is_kept(self):
        assert PeerEndpoint("node-1.example", 7800).host == "node-1.example"
