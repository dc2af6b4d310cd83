"""Storage account directory with per-run caching.

Resolves storage account names (or blob URIs) to account metadata and access
keys. Listing accounts is an expensive round trip that is identical across
every lookup in one verification run, so both accounts and primary keys are
memoized for the lifetime of the directory instance.

Philosophy:
- Uses Azure SDK (azure-mgmt-storage) for listing accounts and keys
- No credentials in code (uses DefaultAzureCredential)
- Keys are never logged
- Failed resolutions are never cached

Public API:
    AccountDirectory: Cached account/key resolution
    AzureStorageDirectory: azure-mgmt-storage backend
    AccountDirectoryError: Base exception
    AccountNotFoundError: No account with the given name
    MalformedUriError: URI host has no account label
    MalformedResourceIdError: Resource id has no resource group
"""

import logging
import re
import threading
from typing import Any, Protocol
from urllib.parse import urlparse

from azure.identity import DefaultAzureCredential
from azure.mgmt.storage import StorageManagementClient

from aemcheck.models import StorageAccountRef
from aemcheck.output_sink import OutputSink
from aemcheck.sla_catalog import SlaCatalog

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT_SUFFIX = "core.windows.net"


class AccountDirectoryError(Exception):
    """Base exception for account directory operations."""

    pass


class AccountNotFoundError(AccountDirectoryError):
    """No storage account with the requested name exists in scope."""

    pass


class MalformedUriError(AccountDirectoryError):
    """URI does not identify a storage account."""

    pass


class MalformedResourceIdError(AccountDirectoryError):
    """Resource identifier does not contain a resource group."""

    pass


class DirectoryBackend(Protocol):
    """Listing capability for storage accounts and their keys."""

    def list_accounts(self) -> list[StorageAccountRef]: ...

    def list_keys(self, resource_group: str, account_name: str) -> list[str]: ...


class AzureStorageDirectory:
    """List storage accounts and keys through azure-mgmt-storage."""

    def __init__(self, subscription_id: str, credential: Any | None = None) -> None:
        if not subscription_id or not subscription_id.strip():
            raise AccountDirectoryError("Subscription ID cannot be empty")
        self.subscription_id = subscription_id
        self.credential = credential or DefaultAzureCredential()
        self.client = StorageManagementClient(self.credential, subscription_id)

    def list_accounts(self) -> list[StorageAccountRef]:
        logger.debug(f"Listing storage accounts in subscription {self.subscription_id}")
        return [StorageAccountRef.from_sdk(a) for a in self.client.storage_accounts.list()]

    def list_keys(self, resource_group: str, account_name: str) -> list[str]:
        # SECURITY: never log the key values
        result = self.client.storage_accounts.list_keys(resource_group, account_name)
        return [k.value for k in (result.keys or []) if k.value]


class AccountDirectory:
    """Resolve storage accounts and keys, memoizing results.

    Both caches are keyed by lower-cased account name. Population is guarded by
    a lock; concurrent misses for the same name may list twice, first writer wins.
    """

    HOST_PATTERN = re.compile(r"^([^.]+)\.(.+)$")
    RESOURCE_ID_PATTERN = re.compile(
        r"/subscriptions/([^/]+)/resourceGroups/([^/]+)/providers/(\w+)", re.IGNORECASE
    )
    BLOB_ENDPOINT_PATTERN = re.compile(r"^.*?\.blob\.(.+)$")

    def __init__(
        self,
        backend: DirectoryBackend,
        sink: OutputSink,
        default_endpoint_suffix: str = DEFAULT_ENDPOINT_SUFFIX,
    ) -> None:
        self.backend = backend
        self.sink = sink
        self.default_endpoint_suffix = default_endpoint_suffix
        self._accounts: dict[str, StorageAccountRef] = {}
        self._keys: dict[str, str] = {}
        self._lock = threading.Lock()

    def resolve_account(self, name: str) -> StorageAccountRef:
        """Resolve an account by name (case-insensitive).

        Raises:
            AccountNotFoundError: If no account in scope has this name
        """
        cache_key = name.lower()
        with self._lock:
            cached = self._accounts.get(cache_key)
        if cached is not None:
            return cached

        account = next(
            (a for a in self.backend.list_accounts() if a.name.lower() == cache_key), None
        )
        if account is None:
            raise AccountNotFoundError(f"Storage account {name} not found")

        with self._lock:
            account = self._accounts.setdefault(cache_key, account)
        logger.debug(f"Resolved storage account {account.name}")
        return account

    def resolve_account_from_uri(self, uri: str) -> str:
        """Get the account name from a blob URI (leftmost label of the host).

        Raises:
            MalformedUriError: If the host is not "<account>.<suffix>"
        """
        try:
            host = urlparse(uri).hostname or ""
        except ValueError as e:
            raise MalformedUriError(f"Could not determine storage account for {uri}") from e

        match = self.HOST_PATTERN.match(host)
        if not match:
            raise MalformedUriError(f"Could not determine storage account for {uri}")
        return match.group(1)

    def resolve_resource_group(self, resource_id: str) -> str:
        """Get the resource group name from an ARM resource id.

        Raises:
            MalformedResourceIdError: If the id has no resource group segment
        """
        match = self.RESOURCE_ID_PATTERN.search(resource_id or "")
        if not match:
            raise MalformedResourceIdError(
                f"Cannot find resource group name and storage account name "
                f"from resource identity {resource_id}"
            )
        return match.group(2)

    def resolve_key(self, name: str) -> str:
        """Get the primary access key of an account.

        Raises:
            AccountNotFoundError: If the account cannot be resolved
            MalformedResourceIdError: If the account id has no resource group
            AccountDirectoryError: If the account has no keys
        """
        cache_key = name.lower()
        with self._lock:
            cached = self._keys.get(cache_key)
        if cached is not None:
            return cached

        account = self.resolve_account(name)
        resource_group = self.resolve_resource_group(account.resource_id)
        keys = self.backend.list_keys(resource_group, account.name)
        if not keys:
            raise AccountDirectoryError(f"No keys returned for storage account {account.name}")

        with self._lock:
            key = self._keys.setdefault(cache_key, keys[0])
        logger.debug(f"Retrieved primary key for storage account {account.name}")
        return key

    def resolve_endpoint_suffix(self, name: str) -> str:
        """Get the endpoint suffix (e.g. "core.windows.net") of an account.

        Falls back to the default suffix with a warning when the blob endpoint
        cannot be parsed.
        """
        account = self.resolve_account(name)
        match = self.BLOB_ENDPOINT_PATTERN.match(account.blob_endpoint or "")
        if match:
            return match.group(1)

        self.sink.warning(
            "Could not extract endpoint information from Azure Storage Account. "
            "Using default {0}",
            self.default_endpoint_suffix,
        )
        return self.default_endpoint_suffix

    def table_endpoint(self, name: str) -> str:
        """Get the primary table endpoint URL of an account."""
        account = self.resolve_account(name)
        if account.table_endpoint:
            return f"https://{account.table_endpoint}/"
        return f"https://{account.name}.table.{self.resolve_endpoint_suffix(name)}/"

    def is_premium_account(self, name: str) -> bool:
        """Check whether an account is a premium storage account.

        Raises:
            AccountNotFoundError: If the account cannot be resolved
            MissingAccountTypeError: If the account has no account type
        """
        account = self.resolve_account(name)
        return SlaCatalog.is_premium(account.account_type, account.name)

    def clear(self) -> None:
        """Drop all cached accounts and keys."""
        with self._lock:
            self._accounts.clear()
            self._keys.clear()


__all__ = [
    "DEFAULT_ENDPOINT_SUFFIX",
    "AccountDirectory",
    "AccountDirectoryError",
    "AccountNotFoundError",
    "AzureStorageDirectory",
    "DirectoryBackend",
    "MalformedResourceIdError",
    "MalformedUriError",
]
