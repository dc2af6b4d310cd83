"""Disk size discovery from the backing VHD blob.

Disks created without an explicit size have no declared size in the VM
model. Their size is read from the page blob's length using a short-lived,
read-only SAS scoped to that one blob.

Discovery is an optional enrichment: any failure results in a warning and
an unknown size, never an exception. Unknown sizes are treated as P10
(127 GB) when computing the disk SLA.
"""

import logging
from urllib.parse import unquote, urlparse

from aemcheck.account_directory import AccountDirectory
from aemcheck.models import DiskDescriptor, SlaProfile
from aemcheck.output_sink import OutputSink
from aemcheck.sla_catalog import SlaCatalog
from aemcheck.storage_plane import StoragePlane

logger = logging.getLogger(__name__)

BYTES_PER_GB = 1024 * 1024 * 1024


class DiskSizeResolver:
    """Resolve disk sizes and disk SLAs."""

    def __init__(self, directory: AccountDirectory, plane: StoragePlane, sink: OutputSink) -> None:
        self.directory = directory
        self.plane = plane
        self.sink = sink

    @staticmethod
    def _split_blob_path(uri: str) -> tuple[str, str]:
        path = unquote(urlparse(uri).path).lstrip("/")
        container, _, blob = path.partition("/")
        if not container or not blob:
            raise ValueError(f"Blob URI of disk does not match known pattern {uri}")
        return container, blob

    def resolve_size_gb(self, backing_uri: str) -> int | None:
        """Get the size in GB of the blob backing a disk.

        Args:
            backing_uri: VHD blob URI

        Returns:
            Size in whole GB, or None when it could not be determined
        """
        try:
            account_name = self.directory.resolve_account_from_uri(backing_uri)
            container, blob = self._split_blob_path(backing_uri)
            sas_token = self.plane.generate_read_sas(account_name, container, blob)
            client = self.plane.blob_client(account_name, container, blob, sas_token)
            length = client.get_blob_properties().size
            size_gb = int(length) // BYTES_PER_GB
        except Exception as e:
            logger.debug(f"Disk size lookup failed for {backing_uri}: {type(e).__name__}: {e}")
            self.sink.warning("Could not determine OS Disk size.")
            return None

        logger.debug(f"Disk {backing_uri} is {size_gb} GB")
        return size_gb

    def disk_sla(self, disk: DiskDescriptor) -> SlaProfile:
        """Get the SLA of a premium disk, discovering its size if needed.

        Raises:
            UnknownDiskTierError: If the size is outside every premium tier
        """
        size_gb = disk.declared_size_gb
        if size_gb is None:
            size_gb = self.resolve_size_gb(disk.backing_uri)
        if size_gb is None:
            self.sink.warning("OS Disk size is empty and could not be determined. Assuming P10.")
            size_gb = SlaCatalog.UNKNOWN_DISK_SIZE_GB

        return SlaCatalog.disk_sla(size_gb)


__all__ = ["BYTES_PER_GB", "DiskSizeResolver"]
