"""
workforce_core.services

Service-layer package.

Responsibilities:
- Provisioning (identity + profile + claims saga) and the payment ledger.
- Translate store faults into `OperationResult` values at the service boundary.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services depend only on the store protocols, so tests can wrap real stores with fakes.
