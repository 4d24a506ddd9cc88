"""Tests for self IP replacement sequencing."""
import pytest

from netreconcile.engine.schema import OperationMethod, ReconcileState
from netreconcile.engine.self_ip import SelfIpReconciler
from netreconcile.errors import ConflictError
from netreconcile.store import RecordingObjectStore

CREATE = OperationMethod.CREATE
DELETE = OperationMethod.DELETE
SYNC = OperationMethod.CONFIG_SYNC_IP

LOCAL_ONLY_TG = "traffic-group-local-only"


def self_ip(name, address, traffic_group=LOCAL_ONLY_TG, vlan="/Common/internal"):
    return {
        "name": name,
        "partition": "Common",
        "vlan": vlan,
        "address": address,
        "trafficGroup": traffic_group,
    }


def calls(store):
    """(method, path) pairs of recorded mutations."""
    return [(op.method, op.path) for op in store.mutations]


class TestSelfIpReplace:
    """Tests for replacing a single self IP."""

    @pytest.mark.asyncio
    async def test_changed_address_deletes_then_creates(self):
        """s1 moving from 10.0.0.9/24 to 10.0.0.5/24 is delete(s1), create(s1)."""
        store = RecordingObjectStore()
        store.seed_collection("/tm/net/self", [self_ip("s1", "10.0.0.9/24")])
        target = self_ip("s1", "10.0.0.5/24")

        await SelfIpReconciler(store, ReconcileState()).reconcile([target])

        assert calls(store) == [
            (DELETE, "/tm/net/self/~Common~s1"),
            (CREATE, "/tm/net/self"),
        ]
        assert store.mutations[1].body["address"] == "10.0.0.5/24"

    @pytest.mark.asyncio
    async def test_new_self_ip_only_created(self):
        """A self IP that does not exist yet is created without deletes."""
        store = RecordingObjectStore()

        await SelfIpReconciler(store, ReconcileState()).reconcile(
            [self_ip("s2", "10.0.2.5/24")]
        )

        assert calls(store) == [(CREATE, "/tm/net/self")]

    @pytest.mark.asyncio
    async def test_probe_error_propagates(self):
        """Only a 404 means absent; other probe failures abort."""
        store = RecordingObjectStore()
        store.fail("/tm/net/self/~Common~s1", ConflictError("denied", status_code=400))

        with pytest.raises(ConflictError):
            await SelfIpReconciler(store, ReconcileState()).reconcile(
                [self_ip("s1", "10.0.0.5/24")]
            )
        assert store.mutations == []


class TestSelfIpDependents:
    """Tests for dependents moved out of the way of a self IP replacement."""

    @pytest.mark.asyncio
    async def test_floating_in_subnet_recreated_last(self):
        """Floating B in A's subnet: delete(B), delete(A), create(A), create(B)."""
        a = self_ip("a", "10.0.0.5/24")
        b = self_ip("b", "10.0.0.100/24", traffic_group="/Common/traffic-group-1")
        store = RecordingObjectStore()
        store.seed_collection("/tm/net/self", [a, b])

        target = self_ip("a", "10.0.0.6/24")
        plan = await SelfIpReconciler(store, ReconcileState()).reconcile([target])

        assert calls(store) == [
            (DELETE, "/tm/net/self/~Common~b"),
            (DELETE, "/tm/net/self/~Common~a"),
            (CREATE, "/tm/net/self"),
            (CREATE, "/tm/net/self"),
        ]
        assert store.mutations[2].body["name"] == "a"
        assert store.mutations[3].body == b
        assert plan.side_effect_floaters == [b]

    @pytest.mark.asyncio
    async def test_floating_outside_subnet_untouched(self):
        a = self_ip("a", "10.0.0.5/24")
        b = self_ip("b", "10.9.0.100/24", traffic_group="/Common/traffic-group-1")
        store = RecordingObjectStore()
        store.seed_collection("/tm/net/self", [a, b])

        await SelfIpReconciler(store, ReconcileState()).reconcile([self_ip("a", "10.0.0.6/24")])

        assert calls(store) == [
            (DELETE, "/tm/net/self/~Common~a"),
            (CREATE, "/tm/net/self"),
        ]

    @pytest.mark.asyncio
    async def test_floating_target_not_a_side_effect(self):
        """A floating self IP that is itself a target is handled as a target."""
        a = self_ip("a", "10.0.0.5/24")
        b = self_ip("b", "10.0.0.100/24", traffic_group="/Common/traffic-group-1")
        store = RecordingObjectStore()
        store.seed_collection("/tm/net/self", [a, b])

        new_b = self_ip("b", "10.0.0.101/24", traffic_group="/Common/traffic-group-1")
        plan = await SelfIpReconciler(store, ReconcileState()).reconcile(
            [self_ip("a", "10.0.0.6/24"), new_b]
        )

        assert plan.side_effect_floaters == []
        assert calls(store) == [
            (DELETE, "/tm/net/self/~Common~b"),
            (DELETE, "/tm/net/self/~Common~a"),
            (CREATE, "/tm/net/self"),
            (CREATE, "/tm/net/self"),
        ]
        assert [op.body["name"] for op in store.mutations[2:]] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_route_through_subnet_recreated_after(self):
        """A route whose gateway is in the subnet goes first and comes back last."""
        route = {
            "name": "r1",
            "partition": "Common",
            "gw": "10.0.0.1",
            "network": "192.168.0.0/16",
            "mtu": 1500,
        }
        unrelated = {
            "name": "r2",
            "partition": "Common",
            "gw": "172.16.0.1",
            "network": "192.169.0.0/16",
        }
        store = RecordingObjectStore()
        store.seed_collection("/tm/net/self", [self_ip("a", "10.0.0.5/24")])
        store.seed_collection("/tm/net/route", [route, unrelated])

        await SelfIpReconciler(store, ReconcileState()).reconcile([self_ip("a", "10.0.0.6/24")])

        assert calls(store) == [
            (DELETE, "/tm/net/route/~Common~r1"),
            (DELETE, "/tm/net/self/~Common~a"),
            (CREATE, "/tm/net/self"),
            (CREATE, "/tm/net/route"),
        ]
        assert store.mutations[-1].body == route

    @pytest.mark.asyncio
    async def test_route_matched_once_for_two_subnets(self):
        route = {"name": "r1", "partition": "Common", "gw": "10.0.0.1", "network": "default"}
        store = RecordingObjectStore()
        store.seed_collection("/tm/net/self", [
            self_ip("a", "10.0.0.5/24"),
            self_ip("b", "10.0.0.7/24"),
        ])
        store.seed_collection("/tm/net/route", [route])

        plan = await SelfIpReconciler(store, ReconcileState()).reconcile([
            self_ip("a", "10.0.0.6/24"),
            self_ip("b", "10.0.0.8/24"),
        ])

        assert plan.routes == [route]
        assert store.paths(DELETE).count("/tm/net/route/~Common~r1") == 1


class TestSelfIpSyncAddress:
    """Tests for clearing and restoring the config sync address."""

    @pytest.mark.asyncio
    async def test_sync_address_cleared_and_restored(self):
        """Sync address on the deleted self IP: none before, original after."""
        store = RecordingObjectStore()
        store.seed_collection("/tm/net/self", [self_ip("a", "10.0.0.5/24")])
        state = ReconcileState(
            current_config={"Common": {"ConfigSync": {"configsyncIp": "10.0.0.5"}}}
        )

        await SelfIpReconciler(store, state).reconcile([self_ip("a", "10.0.0.5/24", vlan="v2")])

        assert calls(store) == [
            (SYNC, "/tm/cm/device"),
            (DELETE, "/tm/net/self/~Common~a"),
            (CREATE, "/tm/net/self"),
            (SYNC, "/tm/cm/device"),
        ]
        assert store.mutations[0].body == "none"
        assert store.mutations[-1].body == "10.0.0.5"

    @pytest.mark.asyncio
    async def test_sync_address_with_cidr_and_route_domain(self):
        store = RecordingObjectStore()
        store.seed_collection("/tm/net/self", [self_ip("a", "10.0.0.5%0/24")])
        state = ReconcileState(
            current_config={"Common": {"ConfigSync": {"configsyncIp": "10.0.0.5/24"}}}
        )

        await SelfIpReconciler(store, state).reconcile([self_ip("a", "10.0.0.6/24")])

        assert store.mutations[0].body == "none"
        assert store.mutations[-1].body == "10.0.0.5"

    @pytest.mark.asyncio
    async def test_sync_address_on_side_effect_floater(self):
        a = self_ip("a", "10.0.0.5/24")
        b = self_ip("b", "10.0.0.100/24", traffic_group="/Common/traffic-group-1")
        store = RecordingObjectStore()
        store.seed_collection("/tm/net/self", [a, b])
        state = ReconcileState(
            current_config={"Common": {"ConfigSync": {"configsyncIp": "10.0.0.100"}}}
        )

        plan = await SelfIpReconciler(store, state).reconcile([self_ip("a", "10.0.0.6/24")])

        assert plan.clears_sync_ip
        assert calls(store)[0] == (SYNC, "/tm/cm/device")
        assert calls(store)[-1] == (SYNC, "/tm/cm/device")

    @pytest.mark.asyncio
    async def test_unrelated_sync_address_untouched(self):
        store = RecordingObjectStore()
        store.seed_collection("/tm/net/self", [self_ip("a", "10.0.0.5/24")])
        state = ReconcileState(
            current_config={"Common": {"ConfigSync": {"configsyncIp": "10.9.9.9"}}}
        )

        await SelfIpReconciler(store, state).reconcile([self_ip("a", "10.0.0.6/24")])

        assert store.paths(SYNC) == []
