"""Storage data-plane clients for a resolved account.

Builds table and blob clients authenticated with the account's primary key,
using endpoints derived from the account directory.

Public API:
    StoragePlane: Factory for data-plane clients
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from azure.core.credentials import AzureNamedKeyCredential
from azure.data.tables import TableServiceClient
from azure.storage.blob import BlobClient, BlobSasPermissions, BlobServiceClient, generate_blob_sas

from aemcheck.account_directory import AccountDirectory

logger = logging.getLogger(__name__)

# Lifetime of SAS tokens issued for blob inspection
SAS_LIFETIME = timedelta(hours=24)


class StoragePlane:
    """Create data-plane clients for accounts known to an AccountDirectory."""

    def __init__(self, directory: AccountDirectory) -> None:
        self.directory = directory

    def _credential(self, account_name: str) -> AzureNamedKeyCredential:
        key = self.directory.resolve_key(account_name)
        return AzureNamedKeyCredential(account_name, key)

    def blob_account_url(self, account_name: str) -> str:
        account = self.directory.resolve_account(account_name)
        if account.blob_endpoint:
            return f"https://{account.blob_endpoint}"
        suffix = self.directory.resolve_endpoint_suffix(account_name)
        return f"https://{account_name}.blob.{suffix}"

    def table_service(self, account_name: str) -> Any:
        """Get a TableServiceClient for the account."""
        suffix = self.directory.resolve_endpoint_suffix(account_name)
        endpoint = f"https://{account_name}.table.{suffix}"
        logger.debug(f"Connecting to table endpoint {endpoint}")
        return TableServiceClient(endpoint=endpoint, credential=self._credential(account_name))

    def blob_service(self, account_name: str) -> Any:
        """Get a BlobServiceClient for the account."""
        return BlobServiceClient(
            self.blob_account_url(account_name), credential=self._credential(account_name)
        )

    def generate_read_sas(self, account_name: str, container: str, blob: str) -> str:
        """Issue a read-only SAS token scoped to exactly one blob."""
        return generate_blob_sas(
            account_name=account_name,
            container_name=container,
            blob_name=blob,
            account_key=self.directory.resolve_key(account_name),
            permission=BlobSasPermissions(read=True),
            expiry=datetime.now(timezone.utc) + SAS_LIFETIME,
        )

    def blob_client(self, account_name: str, container: str, blob: str, sas_token: str) -> Any:
        """Get a BlobClient authenticated with a SAS token."""
        return BlobClient(
            self.blob_account_url(account_name),
            container_name=container,
            blob_name=blob,
            credential=sas_token,
        )

    def get_service_properties(self, account_name: str) -> dict[str, Any]:
        """Get the blob service analytics properties of the account."""
        return self.blob_service(account_name).get_service_properties()


__all__ = ["SAS_LIFETIME", "StoragePlane"]
