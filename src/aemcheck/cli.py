"""Command line interface for aemcheck.

Thin glue around MonitoringVerifier: parses arguments, loads configuration,
renders results and maps hard failures to a non-zero exit code.

Commands:
    - sla vm / sla disk: Expected SLA for a VM size or disk size
    - vm check: Monitoring extension and SLAs of a VM instance view
    - account premium / account endpoint: Storage account lookups
    - verify table / verify diagnostics: Poll metrics tables for telemetry
    - audit xml / audit metrics: Configuration audits
    - config init: Write a starter config file
"""

import json
import logging
from datetime import timedelta
from pathlib import Path

import click
from azure.core.exceptions import AzureError
from rich.table import Table

from aemcheck import __version__
from aemcheck.account_directory import AccountDirectoryError
from aemcheck.config_auditor import ConfigAuditor
from aemcheck.config_manager import AemCheckConfig, ConfigError, ConfigManager
from aemcheck.engine import MonitoringVerifier
from aemcheck.models import VerificationQuery, VerificationResult, VmDescriptor
from aemcheck.output_sink import ConsoleSink, OutputSink
from aemcheck.sla_catalog import SlaCatalog, SlaCatalogError

logger = logging.getLogger(__name__)

# Failures reported to the user as errors (exit code 1)
HARD_FAILURES = (AccountDirectoryError, AzureError, SlaCatalogError, ConfigError, ValueError)


def _sink(ctx: click.Context) -> OutputSink:
    return ctx.obj["sink"]


def _load_config(ctx: click.Context) -> AemCheckConfig:
    return ConfigManager.load_config(ctx.obj.get("config_path"))


def _engine(ctx: click.Context) -> MonitoringVerifier:
    return MonitoringVerifier.from_config(_load_config(ctx), _sink(ctx))


def _fail(ctx: click.Context, error: Exception) -> None:
    # Exit code is set by exit_on_error once the command returns
    _sink(ctx).error("{0}", error)


def _report(ctx: click.Context, title: str, result: VerificationResult) -> None:
    sink = _sink(ctx)
    # Terminate the progress glyph line
    sink.host("")

    console = getattr(sink, "console", None)
    if result.table_outcomes and console is not None:
        table = Table(title=title)
        table.add_column("Table", style="cyan")
        table.add_column("Rows found")
        for outcome in result.table_outcomes:
            table.add_row(outcome.table_name, "yes" if outcome.found else "no")
        console.print(table)

    if result.succeeded:
        sink.host("{0}: OK", title, color="green")
    else:
        sink.host("{0}: NOT OK", title, color="red")
        ctx.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", type=click.Path(), help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Show verbose output")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """Verify Azure Enhanced Monitoring for a VM.

    \b
    CONFIGURATION:
        Config file: ~/.aemcheck/config.toml
        Subscription: subscription_id or AZURE_SUBSCRIPTION_ID
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")
    # Suppress verbose Azure SDK logs (HTTP headers, token acquisition)
    logging.getLogger("azure.core.pipeline.policies.http_logging_policy").setLevel(logging.WARNING)
    logging.getLogger("azure.identity").setLevel(logging.WARNING)

    ctx.ensure_object(dict)
    ctx.obj.setdefault("sink", ConsoleSink(verbose=verbose))
    ctx.obj["config_path"] = config_path


@main.result_callback()
def exit_on_error(result: object, **kwargs: object) -> None:
    """Exit non-zero when a command reported an error through the sink."""
    ctx = click.get_current_context()
    if _sink(ctx).failed:
        ctx.exit(1)


@main.group()
def sla() -> None:
    """Expected performance SLAs."""


@sla.command(name="vm")
@click.argument("vm_size")
@click.pass_context
def sla_vm(ctx: click.Context, vm_size: str) -> None:
    """Show the premium storage SLA of a VM size."""
    profile = SlaCatalog.vm_sla(vm_size)
    if not profile.has_sla:
        _sink(ctx).host("VM size {0} has no premium storage SLA", vm_size)
        return
    _sink(ctx).host(
        "VM size {0}: {1} IOPS, {2} MB/s", vm_size, profile.iops, profile.throughput
    )


@sla.command(name="disk")
@click.argument("size_gb", type=int)
@click.pass_context
def sla_disk(ctx: click.Context, size_gb: int) -> None:
    """Show the premium storage SLA of a disk size in GB."""
    try:
        profile = SlaCatalog.disk_sla(size_gb)
        tier = SlaCatalog.disk_tier(size_gb)
    except SlaCatalogError as e:
        _fail(ctx, e)
        return
    _sink(ctx).host(
        "Disk {0} GB ({1}): {2} IOPS, {3} MB/s", size_gb, tier, profile.iops, profile.throughput
    )


@main.group()
def vm() -> None:
    """Checks against a VM instance view."""


@vm.command(name="check")
@click.argument("vm_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def vm_check(ctx: click.Context, vm_file: Path) -> None:
    """Check the monitoring extension and storage SLAs of a VM.

    VM_FILE is the JSON written by `az vm get-instance-view`.
    """
    sink = _sink(ctx)
    try:
        vm_model = VmDescriptor.from_dict(json.loads(vm_file.read_text()))
        with _engine(ctx) as engine:
            sink.host("Checking monitoring extension of {0}...", vm_model.name, new_line=False)
            status = engine.extension_status(vm_model)
            if status is not None and status.succeeded:
                sink.host("OK ", color="green")
            else:
                sink.host("NOT OK ", color="red")

            profile = engine.vm_sla(vm_model)
            disk_slas = engine.disk_slas(vm_model)
    except HARD_FAILURES as e:
        _fail(ctx, e)
        return

    if profile.has_sla:
        sink.host(
            "VM size {0}: {1} IOPS, {2} MB/s", vm_model.vm_size, profile.iops, profile.throughput
        )
    else:
        sink.host("VM size {0} has no premium storage SLA", vm_model.vm_size)
    for disk, disk_sla in disk_slas:
        sink.host(
            "Disk {0}: {1} IOPS, {2} MB/s",
            disk.name or disk.backing_uri,
            disk_sla.iops,
            disk_sla.throughput,
        )

    if status is None or not status.succeeded:
        ctx.exit(1)


@main.group()
def account() -> None:
    """Storage account lookups."""


@account.command(name="premium")
@click.argument("account_name")
@click.pass_context
def account_premium(ctx: click.Context, account_name: str) -> None:
    """Check whether a storage account is premium storage."""
    try:
        with _engine(ctx) as engine:
            premium = engine.is_premium_account(account_name)
    except HARD_FAILURES as e:
        _fail(ctx, e)
        return
    _sink(ctx).host(
        "Storage account {0} is {1}", account_name, "premium" if premium else "standard"
    )


@account.command(name="endpoint")
@click.argument("account_name")
@click.pass_context
def account_endpoint(ctx: click.Context, account_name: str) -> None:
    """Show the endpoint suffix of a storage account."""
    try:
        with _engine(ctx) as engine:
            suffix = engine.endpoint_suffix(account_name)
    except HARD_FAILURES as e:
        _fail(ctx, e)
        return
    _sink(ctx).host("{0}", suffix)


@main.group()
def verify() -> None:
    """Verify that monitoring data is being written."""


@verify.command(name="table")
@click.argument("account_name")
@click.option("--table", "table_name", help="Table to poll")
@click.option("--discover", is_flag=True, help="Discover the metrics table by name prefix")
@click.option("--filter", "filter_string", required=True, help="OData row filter")
@click.option("--timeout-minutes", type=click.IntRange(min=1), help="Time budget in minutes")
@click.option("--glyph", default=".", show_default=True, help="Progress glyph")
@click.pass_context
def verify_table(
    ctx: click.Context,
    account_name: str,
    table_name: str | None,
    discover: bool,
    filter_string: str,
    timeout_minutes: int | None,
    glyph: str,
) -> None:
    """Poll one table until a row matches the filter."""
    if not table_name and not discover:
        raise click.UsageError("Specify --table or --discover")

    try:
        with _engine(ctx) as engine:
            timeout = (
                timedelta(minutes=timeout_minutes) if timeout_minutes else engine.config.timeout
            )
            query = VerificationQuery(
                account_name=account_name,
                table_name=table_name,
                filter_string=filter_string,
                wait_glyph=glyph,
                timeout=timeout,
                use_discovered_table=discover,
            )
            _sink(ctx).host("Checking table content in {0}...", account_name, new_line=False)
            result = engine.verify_table(query)
    except HARD_FAILURES as e:
        _fail(ctx, e)
        return
    _report(ctx, "Table content", result)


@verify.command(name="diagnostics")
@click.argument("account_name")
@click.option("--resource-id", required=True, help="Deployment id written by the extension")
@click.option("--host", "host_name", required=True, help="Host name written by the extension")
@click.option(
    "--os-type",
    type=click.Choice(["Windows", "Linux"], case_sensitive=False),
    default="Windows",
    show_default=True,
)
@click.option("--timeout-minutes", type=click.IntRange(min=1), help="Time budget in minutes")
@click.option("--glyph", default=".", show_default=True, help="Progress glyph")
@click.pass_context
def verify_diagnostics(
    ctx: click.Context,
    account_name: str,
    resource_id: str,
    host_name: str,
    os_type: str,
    timeout_minutes: int | None,
    glyph: str,
) -> None:
    """Poll every diagnostics table of the OS type for rows of this VM."""
    timeout = timedelta(minutes=timeout_minutes) if timeout_minutes else None
    try:
        with _engine(ctx) as engine:
            _sink(ctx).host("Checking diagnostics tables in {0}...", account_name, new_line=False)
            result = engine.verify_diagnostics(
                account_name, resource_id, host_name, os_type, glyph, timeout
            )
    except HARD_FAILURES as e:
        _fail(ctx, e)
        return
    _report(ctx, "Diagnostics tables", result)


@main.group()
def audit() -> None:
    """Audit monitoring configuration."""


@audit.command(name="xml")
@click.argument("xml_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def audit_xml(ctx: click.Context, xml_file: Path) -> None:
    """Check a diagnostics XML configuration file."""
    sink = _sink(ctx)

    sink.host("Checking diagnostics configuration {0}...", xml_file.name, new_line=False)
    if ConfigAuditor(sink).audit_monitoring_xml(xml_file.read_text()):
        sink.host("OK ", color="green")
    else:
        sink.host("NOT OK ", color="red")
        ctx.exit(1)


@audit.command(name="metrics")
@click.argument("account_name")
@click.pass_context
def audit_metrics(ctx: click.Context, account_name: str) -> None:
    """Check storage analytics settings of an account."""
    sink = _sink(ctx)
    try:
        with _engine(ctx) as engine:
            sink.host("Checking storage analytics of {0}...", account_name, new_line=False)
            ok = engine.audit_service_metrics(account_name)
    except HARD_FAILURES as e:
        _fail(ctx, e)
        return
    if ok:
        sink.host("OK ", color="green")
    else:
        sink.host("NOT OK ", color="red")
        ctx.exit(1)


@main.group(name="config")
def config_group() -> None:
    """Manage the configuration file."""


@config_group.command(name="init")
@click.option("--subscription-id", help="Subscription to query")
@click.option("--path", "path", type=click.Path(), help="Write to this path instead")
@click.pass_context
def config_init(ctx: click.Context, subscription_id: str | None, path: str | None) -> None:
    """Write a config file with default settings."""
    try:
        written = ConfigManager.save_config(
            AemCheckConfig(subscription_id=subscription_id), custom_path=path
        )
    except ConfigError as e:
        _fail(ctx, e)
        return
    _sink(ctx).host("Wrote {0}", written)


if __name__ == "__main__":
    main()
