"""
Reconcile Engine - Ordered apply of declared network state.

This module provides:
- Schema definitions for declarations, diffs, operations and results
- Subnet and address helpers
- Self IP replacement sequencing
- Route domain fixes and application
- RouteMap/RoutingPrefixList route domain migration
- Ordered deletes
- The sequential handler pipeline

The entry point, ReconcileEngine, is imported from netreconcile.engine.engine.
"""
from .schema import (
    Declaration,
    Diff,
    HandlerStatus,
    Operation,
    OperationMethod,
    ReconcileResult,
    ReconcileState,
    TransactionCommand,
)
from .delete import DeleteOrderingEngine
from .route_domain import RouteDomainReconciler
from .routing import RoutingObjectReconciler
from .self_ip import SelfIpPlan, SelfIpReconciler
from .pipeline import HandlerPipeline

__all__ = [
    # Schema
    "Declaration",
    "Diff",
    "HandlerStatus",
    "Operation",
    "OperationMethod",
    "ReconcileResult",
    "ReconcileState",
    "TransactionCommand",
    # Components
    "DeleteOrderingEngine",
    "RouteDomainReconciler",
    "RoutingObjectReconciler",
    "SelfIpPlan",
    "SelfIpReconciler",
    "HandlerPipeline",
]
