"""Tests for route domain fixes and application."""
import logging

import pytest

from netreconcile.engine.route_domain import RouteDomainReconciler, TmosName
from netreconcile.engine.schema import OperationMethod, ReconcileState
from netreconcile.store import RecordingObjectStore


def declaration_with(route_domains, vlans=()):
    return {"Common": {
        "RouteDomain": route_domains,
        "VLAN": {name: {"tag": 100} for name in vlans},
    }}


def reconciler(current_config=None, store=None):
    state = ReconcileState(current_config=current_config or {})
    return RouteDomainReconciler(store or RecordingObjectStore(), state)


class TestTmosName:
    """Tests for parsing object references."""

    def test_bare_name(self):
        parsed = TmosName.parse("v1")
        assert parsed.is_common
        assert parsed.full_name == "/Common/v1"

    def test_partition(self):
        parsed = TmosName.parse("/Tenant/v1")
        assert parsed.partition == "Tenant"
        assert not parsed.is_common

    def test_folder(self):
        parsed = TmosName.parse("/Common/app/v1")
        assert parsed.folder == "app"
        assert parsed.name == "v1"
        assert not parsed.is_common


class TestRouteDomainFix:
    """Tests for RouteDomainReconciler.fix."""

    def test_id_zero_renamed(self):
        """Route domain with id 0 is always named "0"."""
        declaration = declaration_with({"rd0": {"id": 0, "vlans": ["v1"]}}, vlans=["v1"])

        fixed = reconciler().fix(declaration, {})

        assert list(fixed) == ["0"]
        assert fixed["0"]["name"] == "0"
        assert fixed["0"]["vlans"] == ["v1"]

    def test_duplicate_id_zero_last_write_wins(self, caplog):
        declaration = declaration_with({
            "first": {"id": 0, "vlans": []},
            "second": {"id": 0, "connectionLimit": 5, "vlans": []},
        })

        with caplog.at_level(logging.WARNING):
            fixed = reconciler().fix(declaration, {})

        assert fixed["0"]["connectionLimit"] == 5
        assert "also declares id 0" in caplog.text

    def test_does_not_mutate_input(self):
        declaration = declaration_with({"rd0": {"id": 0, "vlans": []}}, vlans=["v1"])

        reconciler().fix(declaration, {})

        assert "rd0" in declaration["Common"]["RouteDomain"]
        assert declaration["Common"]["RouteDomain"]["rd0"]["vlans"] == []

    def test_unassigned_vlans_folded_into_zero(self):
        declaration = declaration_with(
            {"0": {"id": 0, "vlans": ["v1"]}, "rd2": {"id": 2, "vlans": ["v2"]}},
            vlans=["v1", "v2", "v3"],
        )

        fixed = reconciler().fix(declaration, {})

        assert fixed["0"]["vlans"] == ["v1", "v3"]
        assert fixed["rd2"]["vlans"] == ["v2"]

    def test_zero_copied_from_current(self):
        """Domain 0 comes from the current config when not declared."""
        declaration = declaration_with({"rd2": {"id": 2, "vlans": ["v2"]}}, vlans=["v1", "v2"])
        current = {"Common": {"RouteDomain": {"0": {"id": 0, "vlans": ["/Common/v1"]}}}}

        fixed = reconciler(current).fix(declaration, current)

        assert set(fixed) == {"0", "rd2"}
        assert fixed["0"]["vlans"] == ["/Common/v1"]

    def test_unknown_vlans_dropped(self):
        declaration = declaration_with({"0": {"id": 0, "vlans": ["ghost", "v1"]}}, vlans=["v1"])

        fixed = reconciler().fix(declaration, {})

        assert fixed["0"]["vlans"] == ["v1"]

    def test_vlans_in_other_partitions_kept(self):
        declaration = declaration_with({"0": {"id": 0, "vlans": ["/Tenant/v9"]}})

        fixed = reconciler().fix(declaration, {})

        assert fixed["0"]["vlans"] == ["/Tenant/v9"]

    def test_attached_vlans_readded(self):
        """A VLAN still attached on the appliance is put back on its domain."""
        declaration = declaration_with(
            {"0": {"id": 0, "vlans": []}, "rd2": {"id": 2, "vlans": ["v2"]}},
            vlans=["v2"],
        )
        current = {"Common": {"RouteDomain": {
            "0": {"id": 0, "vlans": []},
            "rd2": {"id": 2, "vlans": ["/Common/v2", "/Common/legacy"]},
        }}}

        fixed = reconciler(current).fix(declaration, current)

        assert fixed["rd2"]["vlans"] == ["v2", "/Common/legacy"]

    def test_attached_vlan_listed_is_kept_once(self):
        declaration = declaration_with({"rd2": {"id": 2, "vlans": ["legacy"]}})
        current = {"Common": {"RouteDomain": {
            "rd2": {"id": 2, "vlans": ["/Common/legacy"]},
        }}}

        fixed = reconciler(current).fix(declaration, current)

        assert fixed["rd2"]["vlans"] == ["legacy"]

    def test_no_route_domains(self):
        assert reconciler().fix({"Common": {"VLAN": {"v1": {}}}}, {}) == {}


class TestRouteDomainSelect:
    """Tests for choosing which route domains to apply."""

    def test_diff_names_renamed(self):
        declaration = declaration_with({"rd0": {"id": 0, "vlans": ["v1"]}}, vlans=["v1"])
        to_update = {"Common": {"RouteDomain": {"rd0": {"id": 0, "vlans": ["v1"]}}}}
        current = {"Common": {"RouteDomain": {"0": {"id": 0, "vlans": ["/Common/v1"]}}}}
        rd = reconciler(current)

        selected = rd.select(rd.fix(declaration, current), to_update, declaration)

        assert list(selected) == ["0"]

    def test_fix_changed_vlans_selected(self):
        """A domain outside the diff is applied when the fix changed its VLANs."""
        declaration = declaration_with(
            {"0": {"id": 0, "vlans": []}, "rd2": {"id": 2, "vlans": []}},
            vlans=["v3"],
        )
        current = {"Common": {"RouteDomain": {
            "0": {"id": 0, "vlans": []},
            "rd2": {"id": 2, "vlans": []},
        }}}
        rd = reconciler(current)

        selected = rd.select(rd.fix(declaration, current), {}, declaration)

        assert list(selected) == ["0"]
        assert selected["0"]["vlans"] == ["v3"]

    def test_unchanged_not_selected(self):
        declaration = declaration_with({"0": {"id": 0, "vlans": ["v1"]}}, vlans=["v1"])
        current = {"Common": {"RouteDomain": {"0": {"id": 0, "vlans": ["v1"]}}}}
        rd = reconciler(current)

        assert rd.select(rd.fix(declaration, current), {}, declaration) == {}


class TestRouteDomainApply:
    """Tests for RouteDomainReconciler.apply."""

    @pytest.mark.asyncio
    async def test_zero_first_outside_transaction(self):
        store = RecordingObjectStore()
        current = {"Common": {"RouteDomain": {"rd2": {"id": 2}}}}
        rd = reconciler(current, store)

        await rd.apply({
            "rd2": {"id": 2, "vlans": ["v2"]},
            "0": {"id": 0, "vlans": ["v1"], "strict": True},
            "rd3": {"id": 3},
        })

        first, second = store.mutations
        assert first.method == OperationMethod.MODIFY
        assert first.path == "/tm/net/route-domain/~Common~0"
        assert first.body == {"vlans": ["v1"], "strict": "enabled"}

        assert second.method == OperationMethod.TRANSACTION
        commands = second.body
        assert [(c.method, c.path) for c in commands] == [
            (OperationMethod.MODIFY, "/tm/net/route-domain/~Common~rd2"),
            (OperationMethod.CREATE, "/tm/net/route-domain"),
        ]
        assert commands[1].body == {"name": "rd3", "partition": "Common", "id": 3}

    @pytest.mark.asyncio
    async def test_zero_only_no_transaction(self):
        store = RecordingObjectStore()
        await reconciler(store=store).apply({"0": {"id": 0, "vlans": []}})

        assert [op.method for op in store.mutations] == [OperationMethod.MODIFY]

    @pytest.mark.asyncio
    async def test_nothing_to_apply(self):
        store = RecordingObjectStore()
        assert await reconciler(store=store).apply({}) is None
        assert store.mutations == []
