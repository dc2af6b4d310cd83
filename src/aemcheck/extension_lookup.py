"""Lookup of VM extensions and their instance-view status.

Public API:
    AEM_EXTENSIONS: Enhanced monitoring extension (type, publisher) per OS type
    monitoring_extension: (type, publisher) of the monitoring extension for an OS
    find_extension: Installed extension by type and publisher
    find_extension_status: Instance-view status of that extension
"""

from aemcheck.models import ExtensionRef, ExtensionStatus, VmDescriptor

AEM_EXTENSIONS: dict[str, tuple[str, str]] = {
    "Windows": ("AzureCATExtensionHandler", "Microsoft.AzureCAT.AzureEnhancedMonitoring"),
    "Linux": ("AzureEnhancedMonitorForLinux", "Microsoft.OSTCExtensions"),
}


def monitoring_extension(os_type: str) -> tuple[str, str]:
    """Get the monitoring extension (type, publisher) for an OS type.

    Raises:
        ValueError: If the OS type is unknown
    """
    for known, extension in AEM_EXTENSIONS.items():
        if known.lower() == (os_type or "").lower():
            return extension
    raise ValueError(f"Unknown OS type: '{os_type}'. Valid types: Linux, Windows")


def find_extension(vm: VmDescriptor, extension_type: str, publisher: str) -> ExtensionRef | None:
    """Get the VM's extension with this exact type and publisher, if installed."""
    if vm.extensions is None:
        return None
    return next(
        (
            ext
            for ext in vm.extensions
            if ext.extension_type == extension_type and ext.publisher == publisher
        ),
        None,
    )


def find_extension_status(
    vm: VmDescriptor, extension_type: str, publisher: str
) -> ExtensionStatus | None:
    """Get the instance-view status of the VM's extension with this type and publisher."""
    extension = find_extension(vm, extension_type, publisher)
    if extension is None or vm.extension_statuses is None:
        return None
    return next((s for s in vm.extension_statuses if s.name == extension.name), None)


__all__ = [
    "AEM_EXTENSIONS",
    "find_extension",
    "find_extension_status",
    "monitoring_extension",
]
