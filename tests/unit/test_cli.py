"""Unit tests for the aemcheck CLI."""

import json
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from azure.core.exceptions import ClientAuthenticationError
from click.testing import CliRunner

from aemcheck.account_directory import AccountNotFoundError
from aemcheck.cli import main
from aemcheck.config_manager import AemCheckConfig
from aemcheck.models import (
    DiskDescriptor,
    ExtensionStatus,
    SlaProfile,
    TableOutcome,
    VerificationResult,
)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mock_engine():
    """Patch engine construction; the context manager yields the same mock."""
    with patch("aemcheck.cli.MonitoringVerifier") as mock_cls, patch(
        "aemcheck.cli.ConfigManager.load_config", return_value=AemCheckConfig(subscription_id="sub")
    ):
        engine = MagicMock()
        engine.__enter__.return_value = engine
        engine.config = AemCheckConfig()
        mock_cls.from_config.return_value = engine
        yield engine


def invoke(runner, args, sink):
    return runner.invoke(main, args, obj={"sink": sink})


class TestSlaCommands:
    def test_vm_sla(self, runner, sink):
        result = invoke(runner, ["sla", "vm", "Standard_GS2"], sink)
        assert result.exit_code == 0
        assert sink.host_text == ["VM size Standard_GS2: 10000 IOPS, 250 MB/s"]

    def test_vm_without_sla(self, runner, sink):
        result = invoke(runner, ["sla", "vm", "Standard_A0"], sink)
        assert result.exit_code == 0
        assert "no premium storage SLA" in sink.host_text[0]

    def test_disk_sla(self, runner, sink):
        result = invoke(runner, ["sla", "disk", "129"], sink)
        assert result.exit_code == 0
        assert sink.host_text == ["Disk 129 GB (P20): 2300 IOPS, 150 MB/s"]

    def test_disk_out_of_range_is_error(self, runner, sink):
        result = invoke(runner, ["sla", "disk", "1025"], sink)
        assert result.exit_code == 1
        assert "1025" in sink.errors[0]


class TestVmCommands:
    """Test vm check against an instance-view file."""

    INSTANCE_VIEW = {
        "name": "sapvm",
        "hardwareProfile": {"vmSize": "Standard_DS3"},
        "storageProfile": {
            "osDisk": {
                "name": "osdisk",
                "osType": "Windows",
                "diskSizeGb": 128,
                "vhd": {"uri": "https://premacct.blob.core.windows.net/vhds/os.vhd"},
            }
        },
    }

    @pytest.fixture
    def vm_file(self, tmp_path):
        path = tmp_path / "vm.json"
        path.write_text(json.dumps(self.INSTANCE_VIEW))
        return path

    def test_healthy_vm(self, runner, sink, mock_engine, vm_file):
        mock_engine.extension_status.return_value = ExtensionStatus(
            "AzureEnhancedMonitoring", "ProvisioningState/succeeded"
        )
        mock_engine.vm_sla.return_value = SlaProfile(True, "12800", "128")
        os_disk = DiskDescriptor("https://premacct.blob.core.windows.net/vhds/os.vhd", 128, "osdisk")
        mock_engine.disk_slas.return_value = [(os_disk, SlaProfile(True, "500", "100"))]

        result = invoke(runner, ["vm", "check", str(vm_file)], sink)

        assert result.exit_code == 0
        assert sink.host_text == [
            "Checking monitoring extension of sapvm...",
            "OK ",
            "VM size Standard_DS3: 12800 IOPS, 128 MB/s",
            "Disk osdisk: 500 IOPS, 100 MB/s",
        ]
        vm = mock_engine.extension_status.call_args.args[0]
        assert vm.os_type == "Windows"

    def test_missing_extension_exits_nonzero(self, runner, sink, mock_engine, vm_file):
        mock_engine.extension_status.return_value = None
        mock_engine.vm_sla.return_value = SlaProfile(False)
        mock_engine.disk_slas.return_value = []

        result = invoke(runner, ["vm", "check", str(vm_file)], sink)

        assert result.exit_code == 1
        assert sink.host_text[1] == "NOT OK "
        assert sink.errors == []

    def test_invalid_json_is_error(self, runner, sink, mock_engine, tmp_path):
        path = tmp_path / "vm.json"
        path.write_text("{not json")

        result = invoke(runner, ["vm", "check", str(path)], sink)

        assert result.exit_code == 1
        assert len(sink.errors) == 1


class TestAccountCommands:
    def test_premium(self, runner, sink, mock_engine):
        mock_engine.is_premium_account.return_value = True
        result = invoke(runner, ["account", "premium", "acct"], sink)
        assert result.exit_code == 0
        assert sink.host_text == ["Storage account acct is premium"]

    def test_not_found_is_error(self, runner, sink, mock_engine):
        mock_engine.is_premium_account.side_effect = AccountNotFoundError("Storage account acct not found")
        result = invoke(runner, ["account", "premium", "acct"], sink)
        assert result.exit_code == 1
        assert sink.errors == ["Storage account acct not found"]

    def test_azure_failure_is_error(self, runner, sink, mock_engine):
        mock_engine.is_premium_account.side_effect = ClientAuthenticationError("credential unavailable")

        result = invoke(runner, ["account", "premium", "acct"], sink)

        assert result.exit_code == 1
        assert sink.errors == ["credential unavailable"]

    def test_endpoint(self, runner, sink, mock_engine):
        mock_engine.endpoint_suffix.return_value = "core.windows.net"
        result = invoke(runner, ["account", "endpoint", "acct"], sink)
        assert result.exit_code == 0
        assert sink.host_text == ["core.windows.net"]


class TestVerifyCommands:
    def test_table_requires_selector(self, runner, sink, mock_engine):
        result = invoke(runner, ["verify", "table", "acct", "--filter", "x"], sink)
        assert result.exit_code == 2

    def test_table_success(self, runner, sink, mock_engine):
        mock_engine.verify_table.return_value = VerificationResult(True, (TableOutcome("T", True),))

        result = invoke(
            runner, ["verify", "table", "acct", "--discover", "--filter", "x", "--timeout-minutes", "2"], sink
        )

        assert result.exit_code == 0
        query = mock_engine.verify_table.call_args.args[0]
        assert query.use_discovered_table is True
        assert query.timeout == timedelta(minutes=2)
        assert sink.host_text[-1] == "Table content: OK"

    def test_table_timeout_exits_nonzero(self, runner, sink, mock_engine):
        mock_engine.verify_table.return_value = VerificationResult(False, (TableOutcome("T", False),))
        result = invoke(runner, ["verify", "table", "acct", "--table", "T", "--filter", "x"], sink)
        assert result.exit_code == 1
        assert sink.host_text[-1] == "Table content: NOT OK"
        assert sink.errors == []

    def test_diagnostics(self, runner, sink, mock_engine):
        mock_engine.verify_diagnostics.return_value = VerificationResult(True, (TableOutcome("T1", True),))

        result = invoke(
            runner,
            ["verify", "diagnostics", "acct", "--resource-id", "res", "--host", "vm1", "--os-type", "linux"],
            sink,
        )

        assert result.exit_code == 0
        mock_engine.verify_diagnostics.assert_called_once_with("acct", "res", "vm1", "Linux", ".", None)

    def test_unknown_os_type_rejected(self, runner, sink, mock_engine):
        result = invoke(
            runner,
            ["verify", "diagnostics", "acct", "--resource-id", "r", "--host", "h", "--os-type", "BeOS"],
            sink,
        )
        assert result.exit_code == 2


class TestAuditCommands:
    def test_audit_xml_ok(self, runner, sink, tmp_path):
        path = tmp_path / "wad.xml"
        path.write_text(
            '<WadCfg><DiagnosticMonitorConfiguration overallQuotaInMB="4096">'
            '<PerformanceCounters scheduledTransferPeriod="PT1M">'
            '<PerformanceCounterConfiguration counterSpecifier="x" />'
            "</PerformanceCounters></DiagnosticMonitorConfiguration></WadCfg>"
        )
        result = invoke(runner, ["audit", "xml", str(path)], sink)
        assert result.exit_code == 0
        assert sink.host_text[-1] == "OK "

    def test_audit_xml_not_ok(self, runner, sink, tmp_path):
        path = tmp_path / "wad.xml"
        path.write_text("<WadCfg />")
        result = invoke(runner, ["audit", "xml", str(path)], sink)
        assert result.exit_code == 1
        assert sink.host_text[-1] == "NOT OK "

    def test_audit_metrics(self, runner, sink, mock_engine):
        mock_engine.audit_service_metrics.return_value = True
        result = invoke(runner, ["audit", "metrics", "acct"], sink)
        assert result.exit_code == 0
        mock_engine.audit_service_metrics.assert_called_once_with("acct")


class TestConfigCommands:
    def test_init_writes_file(self, runner, sink, tmp_path):
        path = tmp_path / "cfg" / "config.toml"
        result = invoke(runner, ["config", "init", "--subscription-id", "sub-9", "--path", str(path)], sink)
        assert result.exit_code == 0
        assert 'subscription_id = "sub-9"' in path.read_text()

    def test_missing_subscription_is_error(self, runner, sink, tmp_path, monkeypatch):
        monkeypatch.delenv("AZURE_SUBSCRIPTION_ID", raising=False)
        path = tmp_path / "config.toml"
        path.write_text("timeout_minutes = 1\n")
        result = invoke(runner, ["--config", str(path), "account", "premium", "acct"], sink)
        assert result.exit_code == 1
        assert "No subscription configured" in sink.errors[0]


def test_default_sink_is_console(runner):
    result = runner.invoke(main, ["sla", "vm", "Standard_DS1"])
    assert result.exit_code == 0
    assert "3200 IOPS" in result.output


def test_console_sink_error_sets_exit_code(runner):
    result = runner.invoke(main, ["sla", "disk", "2048"])
    assert result.exit_code == 1
