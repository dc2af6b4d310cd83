"""Unit tests for the SLA catalog."""

import pytest

from aemcheck.models import SlaProfile
from aemcheck.sla_catalog import MissingAccountTypeError, SlaCatalog, UnknownDiskTierError


class TestVmSla:
    """Test SlaCatalog.vm_sla()."""

    @pytest.mark.parametrize(
        "vm_size,iops,throughput",
        [
            ("Standard_DS1", "3200", "32"),
            ("Standard_DS4", "25600", "256"),
            ("Standard_DS14", "50000", "512"),
            ("Standard_GS1", "5000", "125"),
            ("Standard_GS5", "80000", "2000"),
        ],
    )
    def test_known_sizes_have_sla(self, vm_size, iops, throughput):
        """Known premium sizes map to their IOPS and throughput."""
        assert SlaCatalog.vm_sla(vm_size) == SlaProfile(True, iops, throughput)

    @pytest.mark.parametrize(
        "vm_size", ["Standard_D2s_v3", "standard_ds1", "Standard_DS5", "", None]
    )
    def test_unknown_sizes_have_no_sla(self, vm_size):
        """Unknown sizes yield no claim instead of an error."""
        profile = SlaCatalog.vm_sla(vm_size)
        assert profile.has_sla is False
        assert profile.iops == ""
        assert profile.throughput == ""

    def test_every_table_entry_has_sla(self):
        """All catalogued sizes report has_sla."""
        assert all(SlaCatalog.vm_sla(size).has_sla for size in SlaCatalog.VM_SLA_MAP)


class TestDiskSla:
    """Test SlaCatalog.disk_sla() tier boundaries."""

    @pytest.mark.parametrize(
        "size_gb,tier,iops,throughput",
        [
            (1, "P10", "500", "100"),
            (127, "P10", "500", "100"),
            (128, "P10", "500", "100"),
            (129, "P20", "2300", "150"),
            (512, "P20", "2300", "150"),
            (513, "P30", "5000", "200"),
            (1024, "P30", "5000", "200"),
        ],
    )
    def test_tier_boundaries(self, size_gb, tier, iops, throughput):
        """Upper bound of each tier is inclusive."""
        assert SlaCatalog.disk_sla(size_gb) == SlaProfile(True, iops, throughput)
        assert SlaCatalog.disk_tier(size_gb) == tier

    @pytest.mark.parametrize("size_gb", [0, -1, 1025, 4095])
    def test_out_of_range_sizes_fail(self, size_gb):
        """Sizes outside every tier raise UnknownDiskTierError."""
        with pytest.raises(UnknownDiskTierError) as exc_info:
            SlaCatalog.disk_sla(size_gb)
        assert str(size_gb) in str(exc_info.value)

    def test_unknown_size_default_is_p10(self):
        """The assumed size for unknown disks falls in P10."""
        assert SlaCatalog.disk_tier(SlaCatalog.UNKNOWN_DISK_SIZE_GB) == "P10"


class TestIsPremium:
    """Test SlaCatalog.is_premium()."""

    def test_premium_prefix(self):
        assert SlaCatalog.is_premium("Premium_LRS") is True
        assert SlaCatalog.is_premium("Premium_ZRS") is True

    def test_standard_is_not_premium(self):
        assert SlaCatalog.is_premium("Standard_LRS") is False
        assert SlaCatalog.is_premium("premium_lrs") is False

    def test_missing_account_type_fails(self):
        """A missing account type is a hard failure naming the account."""
        with pytest.raises(MissingAccountTypeError) as exc_info:
            SlaCatalog.is_premium(None, "myacct")
        assert "myacct" in str(exc_info.value)
