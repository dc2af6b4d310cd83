"""Monitoring verification engine.

Owns one account directory (and therefore one set of account/key caches)
per verification run, and wires the SLA, disk size, table polling and
configuration audit components to it. Use as a context manager so the
caches are dropped when the run ends.

Example:
    >>> with MonitoringVerifier.from_config(config, sink) as verifier:
    ...     sla = verifier.vm_sla(vm)
    ...     result = verifier.verify_diagnostics("diagacct", res_id, "vm1", "Windows")
"""

import logging
import xml.etree.ElementTree as ET
from datetime import timedelta
from typing import Any

from aemcheck.account_directory import AccountDirectory, AzureStorageDirectory, DirectoryBackend
from aemcheck.config_auditor import ConfigAuditor
from aemcheck.config_manager import AemCheckConfig, ConfigError
from aemcheck.diagnostics_verifier import DEFAULT_TIMEOUT, DiagnosticsVerifier
from aemcheck.disk_size_resolver import DiskSizeResolver
from aemcheck.extension_lookup import find_extension, find_extension_status, monitoring_extension
from aemcheck.models import (
    CheckResult,
    DiskDescriptor,
    ExtensionStatus,
    SlaProfile,
    VerificationQuery,
    VerificationResult,
    VmDescriptor,
)
from aemcheck.output_sink import OutputSink
from aemcheck.sla_catalog import SlaCatalog
from aemcheck.storage_plane import StoragePlane

logger = logging.getLogger(__name__)


class MonitoringVerifier:
    """Verification engine for one run."""

    def __init__(
        self,
        backend: DirectoryBackend,
        sink: OutputSink,
        config: AemCheckConfig | None = None,
        **verifier_options: Any,
    ) -> None:
        """Initialize the engine.

        Args:
            backend: Storage account listing capability
            sink: Output sink for all messages
            config: Configuration (defaults when omitted)
            **verifier_options: Extra DiagnosticsVerifier arguments (clock, sleep, utcnow)
        """
        self.config = config or AemCheckConfig()
        self.sink = sink
        self.directory = AccountDirectory(backend, sink, self.config.default_endpoint_suffix)
        self.plane = StoragePlane(self.directory)
        self.disks = DiskSizeResolver(self.directory, self.plane, sink)
        self.auditor = ConfigAuditor(sink, self.plane)
        self.verifier = DiagnosticsVerifier(
            self.plane,
            sink,
            poll_interval=self.config.poll_interval,
            search_window=self.config.search_window,
            table_prefix=self.config.metrics_table_prefix,
            diagnostics_tables=self.config.diagnostics_tables,
            **verifier_options,
        )

    @classmethod
    def from_config(cls, config: AemCheckConfig, sink: OutputSink) -> "MonitoringVerifier":
        """Build an engine backed by azure-mgmt-storage.

        Raises:
            ConfigError: If no subscription is configured
        """
        if not config.subscription_id:
            raise ConfigError(
                "No subscription configured. Set subscription_id in ~/.aemcheck/config.toml "
                "or the AZURE_SUBSCRIPTION_ID environment variable."
            )
        return cls(AzureStorageDirectory(config.subscription_id), sink, config)

    def __enter__(self) -> "MonitoringVerifier":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Drop the account and key caches."""
        self.directory.clear()

    def vm_sla(self, vm: VmDescriptor) -> SlaProfile:
        return SlaCatalog.vm_sla(vm.vm_size)

    def disk_sla(self, disk: DiskDescriptor) -> SlaProfile:
        return self.disks.disk_sla(disk)

    def disk_slas(self, vm: VmDescriptor) -> list[tuple[DiskDescriptor, SlaProfile]]:
        """SLA of every disk of the VM that lives on premium storage."""
        disks = ([vm.os_disk] if vm.os_disk else []) + list(vm.data_disks)
        results = []
        for disk in disks:
            account_name = self.directory.resolve_account_from_uri(disk.backing_uri)
            if not self.directory.is_premium_account(account_name):
                self.sink.verbose("Disk {0} is not on premium storage", disk.backing_uri)
                continue
            results.append((disk, self.disk_sla(disk)))
        return results

    def extension_status(
        self,
        vm: VmDescriptor,
        extension_type: str | None = None,
        publisher: str | None = None,
    ) -> ExtensionStatus | None:
        """Instance-view status of an extension installed on the VM.

        Defaults to the enhanced monitoring extension for the VM's OS type.

        Returns:
            ExtensionStatus, or None when the extension is not installed or
            has not reported a status

        Raises:
            ValueError: If no type is given and the VM's OS type is unknown
        """
        if extension_type is None or publisher is None:
            default_type, default_publisher = monitoring_extension(vm.os_type)
            extension_type = extension_type or default_type
            publisher = publisher or default_publisher

        if find_extension(vm, extension_type, publisher) is None:
            self.sink.verbose(
                "Extension {0} ({1}) is not installed on {2}", extension_type, publisher, vm.name
            )
            return None
        status = find_extension_status(vm, extension_type, publisher)
        if status is None:
            self.sink.verbose(
                "Extension {0} has no instance view status on {1}", extension_type, vm.name
            )
        return status

    def is_premium_account(self, account_name: str) -> bool:
        return self.directory.is_premium_account(account_name)

    def endpoint_suffix(self, account_name: str) -> str:
        return self.directory.resolve_endpoint_suffix(account_name)

    def verify_table(self, query: VerificationQuery) -> VerificationResult:
        return self.verifier.check_table_content(query)

    def verify_diagnostics(
        self,
        account_name: str,
        resource_id: str,
        host: str,
        os_type: str,
        wait_glyph: str = ".",
        timeout: timedelta | None = None,
    ) -> VerificationResult:
        return self.verifier.check_diagnostics_tables(
            account_name,
            resource_id,
            host,
            wait_glyph,
            os_type,
            timeout or self.config.timeout or DEFAULT_TIMEOUT,
        )

    def audit_monitoring_xml(self, doc: ET.Element | ET.ElementTree | str | bytes | None) -> bool:
        return self.auditor.audit_monitoring_xml(doc)

    def audit_service_metrics(self, account_name: str) -> bool:
        settings = self.auditor.fetch_service_metrics(account_name)
        return self.auditor.audit_service_metrics(account_name, settings)

    def check_named_property(
        self,
        label: str,
        property_name: str,
        properties: dict[str, Any] | None,
        expected_value: str | None,
        parent: CheckResult,
        check_existence_only: bool = False,
    ) -> None:
        self.auditor.check_named_property(
            label, property_name, properties, expected_value, parent, check_existence_only
        )


__all__ = ["MonitoringVerifier"]
