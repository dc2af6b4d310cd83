"""aemcheck - Azure Enhanced Monitoring verification

Philosophy:
- Ruthless simplicity
- Brick architecture (self-contained modules)
- Security by design (keys never logged)
- Fail fast on malformed input, degrade gracefully on optional enrichment

aemcheck resolves the storage accounts behind a VM's disks, computes the
expected performance SLA for the VM and its disks, and verifies that the
monitoring extension is emitting telemetry into the metrics tables.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
