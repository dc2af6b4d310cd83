"""Structural audits of monitoring configuration.

Checks the diagnostics (WAD) XML configuration, the storage analytics
settings of an account, and named properties in the monitoring extension's
public configuration.

All audits are stateless and report through the output sink. None of them
raise on a failed check; malformed input simply fails the check.
"""

import copy
import logging
import xml.etree.ElementTree as ET
from typing import Any

from aemcheck.models import CheckResult, ServiceMetricsSettings
from aemcheck.output_sink import OutputSink
from aemcheck.storage_plane import StoragePlane

logger = logging.getLogger(__name__)

MIN_OVERALL_QUOTA_MB = 4096
REQUIRED_TRANSFER_PERIOD = "PT1M"


def _strip_namespaces(root: ET.Element) -> ET.Element:
    """Return a copy of the tree with "{namespace}" prefixes removed from tags."""
    root = copy.deepcopy(root)
    for element in root.iter():
        if isinstance(element.tag, str) and element.tag.startswith("{"):
            element.tag = element.tag.split("}", 1)[1]
    return root


def _as_root(doc: ET.Element | ET.ElementTree | str | bytes | None) -> ET.Element | None:
    if doc is None:
        return None
    if isinstance(doc, (str, bytes)):
        try:
            return ET.fromstring(doc)
        except ET.ParseError as e:
            logger.debug(f"Monitoring configuration is not valid XML: {e}")
            return None
    if isinstance(doc, ET.ElementTree):
        return doc.getroot()
    return doc


class ConfigAuditor:
    """Audit monitoring configuration documents and service settings."""

    def __init__(self, sink: OutputSink, plane: StoragePlane | None = None) -> None:
        self.sink = sink
        self.plane = plane

    def audit_monitoring_xml(self, doc: ET.Element | ET.ElementTree | str | bytes | None) -> bool:
        """Check the diagnostics XML configuration required for monitoring.

        Requires /WadCfg/DiagnosticMonitorConfiguration with overallQuotaInMB of
        at least 4096, a PerformanceCounters node with scheduledTransferPeriod
        PT1M and at least one PerformanceCounterConfiguration.
        """
        root = _as_root(doc)
        if root is None:
            return False
        root = _strip_namespaces(root)
        if root.tag != "WadCfg":
            return False

        monitor_cfg = root.find("DiagnosticMonitorConfiguration")
        if monitor_cfg is None:
            return False

        try:
            quota = int(monitor_cfg.get("overallQuotaInMB", ""))
        except ValueError:
            return False
        if quota < MIN_OVERALL_QUOTA_MB:
            return False

        counters = monitor_cfg.find("PerformanceCounters")
        if counters is None:
            return False
        if (counters.get("scheduledTransferPeriod") or "").lower() != REQUIRED_TRANSFER_PERIOD.lower():
            return False

        return counters.find("PerformanceCounterConfiguration") is not None

    def fetch_service_metrics(self, account_name: str) -> ServiceMetricsSettings:
        """Read the blob service analytics settings of an account."""
        if self.plane is None:
            raise RuntimeError("ConfigAuditor has no storage plane to read service properties")
        properties = self.plane.get_service_properties(account_name)
        return ServiceMetricsSettings.from_service_properties(properties)

    def audit_service_metrics(
        self, account_name: str, settings: ServiceMetricsSettings | None
    ) -> bool:
        """Check that storage analytics logging and minute metrics are enabled."""
        if (
            settings is None
            or not settings.logs_all_operations
            or settings.minute_metrics_level is None
            or settings.minute_metrics_level <= 0
            or (settings.retention_days is not None and settings.retention_days < 0)
        ):
            self.sink.verbose(
                "Storage account {0} does not have the required metrics enabled", account_name
            )
            return False

        self.sink.verbose("Storage account {0} has required metrics enabled", account_name)
        return True

    @staticmethod
    def get_property_value(property_name: str, properties: dict[str, Any] | None) -> str | None:
        """Look up a value in the "cfg" key/value list of a properties document.

        Returns None when the document, the list, the key or a string value is missing.
        """
        if not properties:
            return None
        entries = properties.get("cfg")
        if not entries:
            return None

        entry = next(
            (e for e in entries if isinstance(e, dict) and e.get("key") == property_name), None
        )
        if entry is None:
            return None
        value = entry.get("value")
        return value if isinstance(value, str) else None

    def check_named_property(
        self,
        label: str,
        property_name: str,
        properties: dict[str, Any] | None,
        expected_value: str | None,
        parent: CheckResult,
        check_existence_only: bool = False,
    ) -> None:
        """Check a named property and record the outcome on parent.

        A value passes when it is non-empty and either no expected value was
        given or it equals the expected value. With check_existence_only a
        non-empty value records an additional pass first, so a single check may
        record two entries (pass + pass, or pass + fail when an expected value
        was given and does not match).
        """
        value = self.get_property_value(property_name, properties)
        self.sink.host(label + "...", new_line=False)

        if value and check_existence_only:
            parent.add(label, True)
            self.sink.host("OK ", color="green")

        if (value and not expected_value) or value == expected_value:
            parent.add(label, True)
            self.sink.host("OK ", color="green")
        else:
            parent.add(label, False)
            self.sink.host("NOT OK ", color="red")


__all__ = [
    "MIN_OVERALL_QUOTA_MB",
    "REQUIRED_TRANSFER_PERIOD",
    "ConfigAuditor",
]
