"""SLA catalog for premium storage VM sizes and disk tiers.

This module maps VM sizes and premium disk sizes to the performance the
platform guarantees for them.

VM sizes:
- DS series: Standard_DS1..DS4, Standard_DS11..DS14
- GS series: Standard_GS1..GS5
- Any other size has no SLA claim (not an error)

Disk tiers (size in GB, upper bound inclusive):
- P10: 1-128    (500 IOPS, 100 MB/s)
- P20: 129-512  (2300 IOPS, 150 MB/s)
- P30: 513-1024 (5000 IOPS, 200 MB/s)
"""

from typing import ClassVar

from aemcheck.models import SlaProfile


class SlaCatalogError(Exception):
    """Raised when SLA lookups fail."""

    pass


class UnknownDiskTierError(SlaCatalogError):
    """Disk size is outside every premium storage tier."""

    pass


class MissingAccountTypeError(SlaCatalogError):
    """Storage account has no account type."""

    pass


class SlaCatalog:
    """Map VM sizes and disk sizes to SLA profiles."""

    # VM size -> (IOPS, throughput MB/s)
    VM_SLA_MAP: ClassVar[dict[str, tuple[str, str]]] = {
        "Standard_DS1": ("3200", "32"),
        "Standard_DS2": ("6400", "64"),
        "Standard_DS3": ("12800", "128"),
        "Standard_DS4": ("25600", "256"),
        "Standard_DS11": ("6400", "64"),
        "Standard_DS12": ("12800", "128"),
        "Standard_DS13": ("25600", "256"),
        "Standard_DS14": ("50000", "512"),
        "Standard_GS1": ("5000", "125"),
        "Standard_GS2": ("10000", "250"),
        "Standard_GS3": ("20000", "500"),
        "Standard_GS4": ("40000", "1000"),
        "Standard_GS5": ("80000", "2000"),
    }

    # (exclusive upper bound, tier, IOPS, throughput MB/s), checked in order
    DISK_TIERS: ClassVar[list[tuple[int, str, str, str]]] = [
        (129, "P10", "500", "100"),
        (513, "P20", "2300", "150"),
        (1025, "P30", "5000", "200"),
    ]

    # Size assumed when a disk's size is neither declared nor discoverable (P10)
    UNKNOWN_DISK_SIZE_GB = 127

    PREMIUM_PREFIX = "Premium"

    @classmethod
    def vm_sla(cls, vm_size: str | None) -> SlaProfile:
        """Get the SLA for a VM size.

        Args:
            vm_size: Azure VM size (e.g. "Standard_DS3")

        Returns:
            SlaProfile; has_sla is False for sizes without a premium storage SLA
        """
        entry = cls.VM_SLA_MAP.get(vm_size or "")
        if entry is None:
            return SlaProfile(has_sla=False)
        iops, throughput = entry
        return SlaProfile(has_sla=True, iops=iops, throughput=throughput)

    @classmethod
    def _disk_tier_entry(cls, size_gb: int) -> tuple[int, str, str, str]:
        if size_gb > 0:
            for entry in cls.DISK_TIERS:
                if size_gb < entry[0]:
                    return entry
        raise UnknownDiskTierError(f"Unknown disk size for Premium Storage - {size_gb}")

    @classmethod
    def disk_sla(cls, size_gb: int) -> SlaProfile:
        """Get the SLA for a premium disk of the given size.

        Args:
            size_gb: Disk size in GB

        Returns:
            SlaProfile for the matching tier

        Raises:
            UnknownDiskTierError: If size is <= 0 or > 1024
        """
        _, _, iops, throughput = cls._disk_tier_entry(size_gb)
        return SlaProfile(has_sla=True, iops=iops, throughput=throughput)

    @classmethod
    def disk_tier(cls, size_gb: int) -> str:
        """Get the tier name (P10/P20/P30) for a disk size.

        Raises:
            UnknownDiskTierError: If size is <= 0 or > 1024
        """
        return cls._disk_tier_entry(size_gb)[1]

    @classmethod
    def is_premium(cls, account_type: str | None, account_name: str | None = None) -> bool:
        """Check whether a storage account type is a premium tier.

        Args:
            account_type: Account type / SKU label (e.g. "Premium_LRS")
            account_name: Account name, used in the error message only

        Raises:
            MissingAccountTypeError: If account_type is missing
        """
        if account_type is None:
            raise MissingAccountTypeError(
                f"No AccountType for storage account {account_name or '<unknown>'} found"
            )
        return account_type.startswith(cls.PREMIUM_PREFIX)


__all__ = [
    "MissingAccountTypeError",
    "SlaCatalog",
    "SlaCatalogError",
    "UnknownDiskTierError",
]
