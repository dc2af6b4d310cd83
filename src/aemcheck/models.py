"""Data models shared by the verification components.

All models are immutable value objects except CheckResult, which collects
partial results while an audit is running.

Public API (the "studs"):
    StorageAccountRef: Resolved storage account metadata
    SlaProfile: IOPS/throughput claim for a VM size or disk tier
    DiskDescriptor: OS or data disk with optional declared size
    ExtensionRef / ExtensionStatus / VmDescriptor: VM descriptor input
    VerificationQuery / VerificationResult / TableOutcome: table polling
    CheckResult: Named audit check with partial results
    ServiceMetricsSettings: Logging and minute-metrics settings of an account
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any
from urllib.parse import urlparse

# Minute-metrics levels, matching the storage analytics service
METRICS_LEVEL_NONE = 0
METRICS_LEVEL_SERVICE = 1
METRICS_LEVEL_SERVICE_AND_API = 2

PROVISIONING_SUCCEEDED = "ProvisioningState/succeeded"


def _endpoint_host(endpoint: str | None) -> str | None:
    """Return the host part of an endpoint URL (or the value if already a host)."""
    if not endpoint:
        return None
    parsed = urlparse(endpoint)
    return parsed.hostname or endpoint.strip("/")


@dataclass(frozen=True)
class StorageAccountRef:
    """Resolved storage account metadata.

    Attributes:
        name: Storage account name
        resource_id: Full ARM resource identifier
        account_type: SKU label (e.g. "Premium_LRS"), None when unknown
        blob_endpoint: Primary blob endpoint host (e.g. "foo.blob.core.windows.net")
        table_endpoint: Primary table endpoint host
    """

    name: str
    resource_id: str
    account_type: str | None = None
    blob_endpoint: str | None = None
    table_endpoint: str | None = None

    @classmethod
    def from_sdk(cls, account: Any) -> "StorageAccountRef":
        """Create from an azure-mgmt-storage StorageAccount model."""
        sku = getattr(account, "sku", None)
        account_type = getattr(sku, "name", None) if sku is not None else None
        # SkuName enum member -> plain SKU label such as "Premium_LRS"
        account_type = getattr(account_type, "value", account_type)
        endpoints = getattr(account, "primary_endpoints", None)
        return cls(
            name=account.name,
            resource_id=account.id,
            account_type=str(account_type) if account_type is not None else None,
            blob_endpoint=_endpoint_host(getattr(endpoints, "blob", None)),
            table_endpoint=_endpoint_host(getattr(endpoints, "table", None)),
        )


@dataclass(frozen=True)
class SlaProfile:
    """Performance claim for a VM size or disk tier."""

    has_sla: bool
    iops: str = ""
    throughput: str = ""


@dataclass(frozen=True)
class DiskDescriptor:
    """OS or data disk backed by a page blob.

    Attributes:
        backing_uri: URI of the VHD blob
        declared_size_gb: Size from the VM model, None when not declared
        name: Disk name (informational)
    """

    backing_uri: str
    declared_size_gb: int | None = None
    name: str | None = None


@dataclass(frozen=True)
class ExtensionRef:
    """VM extension as listed in the VM resource model."""

    name: str
    extension_type: str
    publisher: str


@dataclass(frozen=True)
class ExtensionStatus:
    """VM extension entry from the VM instance view."""

    name: str
    status_code: str | None = None
    display_status: str | None = None

    @property
    def succeeded(self) -> bool:
        return (self.status_code or "").lower() == PROVISIONING_SUCCEEDED.lower()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExtensionStatus":
        """Create from an instance-view extension entry (first status wins)."""
        statuses = data.get("statuses") or [{}]
        return cls(
            name=data.get("name", ""),
            status_code=statuses[0].get("code"),
            display_status=statuses[0].get("displayStatus"),
        )


@dataclass(frozen=True)
class VmDescriptor:
    """Virtual machine descriptor supplied by the caller."""

    name: str
    vm_size: str
    os_type: str
    os_disk: DiskDescriptor | None = None
    data_disks: tuple[DiskDescriptor, ...] = ()
    extensions: tuple[ExtensionRef, ...] | None = None
    extension_statuses: tuple[ExtensionStatus, ...] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VmDescriptor":
        """Create from the JSON of `az vm get-instance-view`.

        Disks without a VHD blob (managed disks) are left out. Missing
        "resources" or "instanceView.extensions" map to None.

        Raises:
            ValueError: If the VM size is missing
        """
        vm_size = (data.get("hardwareProfile") or {}).get("vmSize")
        if not vm_size:
            raise ValueError(f"VM {data.get('name')!r} has no hardwareProfile.vmSize")

        storage = data.get("storageProfile") or {}
        os_disk = storage.get("osDisk") or {}

        extensions = None
        if data.get("resources") is not None:
            extensions = tuple(
                ExtensionRef(
                    name=ext.get("name", ""),
                    extension_type=ext.get("typePropertiesType") or ext.get("type", ""),
                    publisher=ext.get("publisher", ""),
                )
                for ext in data["resources"]
            )

        statuses = None
        instance_view = data.get("instanceView") or {}
        if instance_view.get("extensions") is not None:
            statuses = tuple(
                ExtensionStatus.from_dict(ext) for ext in instance_view["extensions"]
            )

        return cls(
            name=data.get("name", ""),
            vm_size=vm_size,
            os_type=os_disk.get("osType") or "",
            os_disk=_disk_from_dict(os_disk),
            data_disks=tuple(
                disk
                for disk in (_disk_from_dict(d) for d in storage.get("dataDisks") or [])
                if disk is not None
            ),
            extensions=extensions,
            extension_statuses=statuses,
        )


def _disk_from_dict(data: dict[str, Any]) -> DiskDescriptor | None:
    uri = (data.get("vhd") or {}).get("uri")
    if not uri:
        return None
    return DiskDescriptor(uri, data.get("diskSizeGb"), data.get("name"))


@dataclass(frozen=True)
class VerificationQuery:
    """Single-table verification request.

    Attributes:
        account_name: Storage account holding the metrics tables
        table_name: Explicit table name (ignored when use_discovered_table is set)
        filter_string: OData filter the rows must match
        wait_glyph: Progress glyph written after each failed attempt
        timeout: Overall time budget
        use_discovered_table: Discover the table by name prefix instead of table_name
    """

    account_name: str
    table_name: str | None
    filter_string: str
    wait_glyph: str = "."
    timeout: timedelta = timedelta(minutes=15)
    use_discovered_table: bool = False


@dataclass(frozen=True)
class TableOutcome:
    """Outcome of polling one table."""

    table_name: str
    found: bool


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a verification call."""

    succeeded: bool
    table_outcomes: tuple[TableOutcome, ...] = ()


@dataclass
class CheckResult:
    """Named audit check with its partial results."""

    label: str
    passed: bool = True
    partial_results: list["CheckResult"] = field(default_factory=list)

    def add(self, label: str, passed: bool) -> "CheckResult":
        """Append a partial result and return it."""
        partial = CheckResult(label=label, passed=passed)
        self.partial_results.append(partial)
        return partial

    @property
    def all_passed(self) -> bool:
        """True when the check and all of its partial results passed."""
        return self.passed and all(p.all_passed for p in self.partial_results)


@dataclass(frozen=True)
class ServiceMetricsSettings:
    """Logging and minute-metrics settings of a storage account's blob service."""

    logging_read: bool = False
    logging_write: bool = False
    logging_delete: bool = False
    minute_metrics_level: int | None = None
    retention_days: int | None = None

    @property
    def logs_all_operations(self) -> bool:
        return self.logging_read and self.logging_write and self.logging_delete

    @classmethod
    def from_service_properties(cls, properties: dict[str, Any]) -> "ServiceMetricsSettings":
        """Create from the dict returned by BlobServiceClient.get_service_properties()."""
        logging_cfg = properties.get("analytics_logging")
        minute = properties.get("minute_metrics")

        level = None
        retention_days = None
        if minute is not None:
            if not getattr(minute, "enabled", False):
                level = METRICS_LEVEL_NONE
            elif getattr(minute, "include_apis", False):
                level = METRICS_LEVEL_SERVICE_AND_API
            else:
                level = METRICS_LEVEL_SERVICE
            policy = getattr(minute, "retention_policy", None)
            if policy is not None and getattr(policy, "enabled", False):
                retention_days = getattr(policy, "days", None)

        return cls(
            logging_read=bool(getattr(logging_cfg, "read", False)),
            logging_write=bool(getattr(logging_cfg, "write", False)),
            logging_delete=bool(getattr(logging_cfg, "delete", False)),
            minute_metrics_level=level,
            retention_days=retention_days,
        )


__all__ = [
    "METRICS_LEVEL_NONE",
    "METRICS_LEVEL_SERVICE",
    "METRICS_LEVEL_SERVICE_AND_API",
    "PROVISIONING_SUCCEEDED",
    "CheckResult",
    "DiskDescriptor",
    "ExtensionRef",
    "ExtensionStatus",
    "ServiceMetricsSettings",
    "SlaProfile",
    "StorageAccountRef",
    "TableOutcome",
    "VerificationQuery",
    "VerificationResult",
    "VmDescriptor",
]
