"""Tests for the handler pipeline and the reconcile engine."""
import pytest

from netreconcile.engine.engine import ReconcileEngine, default_steps
from netreconcile.engine.pipeline import HandlerPipeline
from netreconcile.engine.schema import (
    Diff,
    HandlerStatus,
    OperationMethod,
    ReconcileResult,
    ReconcileState,
)
from netreconcile.errors import ConflictError, ReconcileError
from netreconcile.handlers import (
    DeleteHandler,
    DeprovisionHandler,
    DscHandler,
    GslbHandler,
    NetworkHandler,
    ProvisionHandler,
)
from netreconcile.handlers.base import Handler
from netreconcile.store import RecordingObjectStore


class RecordingHandler(Handler):
    """Handler double that logs its name and returns a fixed status."""

    def __init__(self, name, log, status=None, error=None):
        self.name = name
        self.log = log
        self.status = status
        self.error = error

    async def process(self, declaration, store, state):
        self.log.append((self.name, declaration))
        if self.error is not None:
            raise self.error
        return self.status


class TestHandlerPipeline:
    """Tests for HandlerPipeline.process."""

    @pytest.mark.asyncio
    async def test_runs_in_order(self):
        log = []
        pipeline = HandlerPipeline(RecordingObjectStore(), ReconcileState())

        statuses = await pipeline.process([
            (RecordingHandler("first", log), {"a": 1}),
            (RecordingHandler("second", log, HandlerStatus(reboot_required=True)), {"b": 2}),
        ])

        assert log == [("first", {"a": 1}), ("second", {"b": 2})]
        assert statuses[0] == HandlerStatus()
        assert statuses[1].reboot_required is True

    @pytest.mark.asyncio
    async def test_stops_at_first_failure(self):
        """Later handlers never run once one fails."""
        log = []
        pipeline = HandlerPipeline(RecordingObjectStore(), ReconcileState())

        with pytest.raises(ReconcileError) as exc_info:
            await pipeline.process([
                (RecordingHandler("first", log), {}),
                (RecordingHandler("broken", log, error=ConflictError("rejected")), {}),
                (RecordingHandler("never", log), {}),
            ])

        assert [name for name, _ in log] == ["first", "broken"]
        assert str(exc_info.value) == "[broken] rejected"
        assert isinstance(exc_info.value.__cause__, ConflictError)

    @pytest.mark.asyncio
    async def test_annotated_errors_pass_through(self):
        log = []
        error = ReconcileError("bad", "network", "VLAN")
        pipeline = HandlerPipeline(RecordingObjectStore(), ReconcileState())

        with pytest.raises(ReconcileError) as exc_info:
            await pipeline.process([(RecordingHandler("network", log, error=error), {})])

        assert exc_info.value is error


class TestReconcileResult:
    """Tests for status aggregation."""

    def test_from_statuses(self):
        result = ReconcileResult.from_statuses([
            HandlerStatus(),
            HandlerStatus(reboot_required=True, rollback_info={"provisionHandler": {"x": 1}}),
            HandlerStatus(rollback_info={"other": {"y": 2}}),
        ])

        assert result.reboot_required is True
        assert result.rollback_info == {"provisionHandler": {"x": 1}, "other": {"y": 2}}
        assert result.to_dict() == {
            "rebootRequired": True,
            "rollbackInfo": {"provisionHandler": {"x": 1}, "other": {"y": 2}},
        }

    def test_diff_from_dict(self):
        diff = Diff.from_dict({"toUpdate": {"Common": {}}})
        assert diff.to_update == {"Common": {}}
        assert diff.to_delete == {}


class TestReconcileEngine:
    """Tests for ReconcileEngine.apply."""

    def test_default_order(self):
        diff = Diff(to_update={"u": 1}, to_delete={"d": 1})
        steps = default_steps(diff)

        assert [type(handler) for handler, _ in steps] == [
            ProvisionHandler,
            NetworkHandler,
            DscHandler,
            GslbHandler,
            DeleteHandler,
            DeprovisionHandler,
        ]
        assert [declaration for _, declaration in steps] == [
            {"u": 1}, {"u": 1}, {"u": 1}, {"u": 1}, {"d": 1}, {"u": 1},
        ]

    @pytest.mark.asyncio
    async def test_apply_update_then_delete(self):
        declaration = {"Common": {
            "VLAN": {"v2": {"tag": 20}},
            "ConfigSync": {"configsyncIp": "10.0.0.5/24"},
        }}
        current = {"Common": {"VLAN": {"v1": {"tag": 10}}}}
        diff = {
            "toUpdate": declaration,
            "toDelete": {"Common": {"VLAN": {"v1": {}}}},
        }
        store = RecordingObjectStore()

        result = await ReconcileEngine(store).apply(declaration, current, diff)

        assert [(op.method, op.path) for op in store.mutations] == [
            (OperationMethod.CREATE_OR_MODIFY, "/tm/net/vlan"),
            (OperationMethod.CONFIG_SYNC_IP, "/tm/cm/device"),
            (OperationMethod.DELETE, "/tm/net/vlan/~Common~v1"),
        ]
        assert result.reboot_required is False

    @pytest.mark.asyncio
    async def test_inputs_not_mutated(self):
        declaration = {"Common": {"RouteDomain": {"rd0": {"id": 0, "vlans": []}},
                                  "VLAN": {"v1": {}}}}
        current = {"Common": {"RouteDomain": {"0": {"id": 0, "vlans": []}}}}
        diff = Diff(to_update=declaration, to_delete={})

        await ReconcileEngine(RecordingObjectStore()).apply(declaration, current, diff)

        assert declaration == {"Common": {"RouteDomain": {"rd0": {"id": 0, "vlans": []}},
                                          "VLAN": {"v1": {}}}}
        assert current == {"Common": {"RouteDomain": {"0": {"id": 0, "vlans": []}}}}

    @pytest.mark.asyncio
    async def test_failure_raises_reconcile_error(self):
        store = RecordingObjectStore()
        store.fail("/tm/net/vlan/~Common~v1", ConflictError("vlan in use by self IP"))
        diff = {"toDelete": {"Common": {"VLAN": {"v1": {}}}}}

        with pytest.raises(ReconcileError) as exc_info:
            await ReconcileEngine(store).apply({}, {}, diff)

        assert str(exc_info.value) == "[delete/VLAN] vlan in use by self IP"

    @pytest.mark.asyncio
    async def test_provision_status_aggregated(self):
        declaration = {"Common": {"Provision": {"vcmp": "dedicated"}}}
        current = {"Common": {"Provision": {"vcmp": "none"}}}

        result = await ReconcileEngine(RecordingObjectStore()).apply(
            declaration, current, Diff(to_update=declaration)
        )

        assert result.reboot_required is True
        assert result.rollback_info == {"provisionHandler": {"Provision": {"vcmp": "none"}}}
