"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO).  The caller
extracts the rendered text via ``get_output(console)``.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json as _json
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from rentrepairs.output.console import (
    create_console,
    get_output,
    style_for_status,
    style_for_urgency,
)

if TYPE_CHECKING:
    from rich.console import Console

    from rentrepairs.services.result import ServiceResult

Renderer = Callable[..., None]


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Returns plain text (no ANSI) when Rich detects no terminal,
    which is the case inside Click's CliRunner and piped output.
    """
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
        if verbose:
            _render_meta(console, result)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode: ids only."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    items = result.data.get("items")
    if isinstance(items, list):
        return "\n".join(_extract_id(item) for item in items if _extract_id(item))
    for key in ("request", "tenant", "worker"):
        nested = result.data.get(key)
        if isinstance(nested, dict) and "id" in nested:
            return str(nested["id"])
    if "id" in result.data:
        return str(result.data["id"])
    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _extract_id(item: Any) -> str:
    if isinstance(item, dict):
        for key in ("id", "worker_id"):
            val = item.get(key)
            if val is not None:
                return str(val)
    return ""


def _status_line(console: Console, result: ServiceResult) -> None:
    label = Text("OK", style="rr.ok")
    op = Text(f"  {result.op}", style="rr.op")
    console.print(label, op, end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="rr.key")
    text = str(value)
    if key == "id" or key.endswith("_id"):
        v = Text(text, style="rr.id")
    elif key == "status":
        v = Text(text, style=style_for_status(text))
    elif key == "urgency":
        v = Text(text, style=style_for_urgency(text))
    elif key == "name":
        v = Text(text, style="rr.title")
    else:
        v = Text(text)
    console.print(k, v, sep="", end="")
    console.print()


def _fields(console: Console, data: dict[str, Any], keys: tuple[str, ...]) -> None:
    for key in keys:
        if data.get(key) is not None:
            _field(console, key, data[key])


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print meta block including telemetry span tree (verbose only)."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))

    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_telemetry_tree(console: Console, span_data: dict[str, Any], indent: int = 4) -> None:
    """Render a hierarchical span tree with color-coded timing."""
    prefix = " " * indent
    name = span_data.get("name", "?")
    duration = span_data.get("duration_ms", 0.0)

    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    line = f"{prefix}[{style}]{duration:>8.2f}ms[/{style}]  {name}"
    annotations = span_data.get("annotations") or {}
    if annotations:
        line += "  (" + ", ".join(f"{ak}={av}" for ak, av in annotations.items()) + ")"
    console.print(line)

    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


def _styled(value: str, style: str) -> Text:
    return Text(value, style=style)


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="rr.error")
    op = Text(f"  {result.op}", style="rr.op")
    code = Text(f" [{err.code}]" if err else "", style="rr.key")
    console.print(label, op, code, Text(": "), msg, sep="")

    if err is None:
        return
    allowed = err.detail.get("allowed")
    if allowed:
        console.print(f"  allowed: {', '.join(str(a) for a in allowed)}")
    if verbose and err.detail:
        console.print(Text(f"  kind: {err.kind}", style="dim"))
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")


# ── Property renderers ────────────────────────────────────────────────


def _render_property(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data.get("property", result.data)
    lines = [
        f"name: {d.get('name', '')}",
        f"address: {d.get('address', '')}, {d.get('city', '')}",
        f"manager: {d.get('manager_id', '')}",
        f"active: {'yes' if d.get('is_active') else 'no'}",
        f"requests: {d.get('request_count', 0)}",
    ]
    tenants = d.get("tenants", [])
    if tenants:
        lines.append("tenants:")
        for tenant in tenants:
            unit = f" (unit {tenant['unit']})" if tenant.get("unit") else ""
            lines.append(f"  {tenant['id']}  {tenant['email']}{unit}")
    title = f"{d.get('code', '?')}  {d.get('id', '')}"
    console.print(Panel("\n".join(lines), title=title, border_style="dim", expand=False))


def _render_property_mutation(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    _status_line(console, result)
    tenant = result.data.get("tenant")
    if tenant:
        _fields(console, tenant, ("id", "email", "unit"))
        _field(console, "property_id", tenant.get("property_id", ""))
        return
    _fields(console, result.data, ("id", "code", "name", "manager_id", "is_active"))


def _render_property_table(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    items = result.data.get("items", [])
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("ID", style="rr.id", no_wrap=True)
    table.add_column("Code", style="rr.title")
    table.add_column("Name")
    table.add_column("City")
    table.add_column("Manager")
    table.add_column("Tenants", justify="right")
    table.add_column("Requests", justify="right")
    table.add_column("Active")
    for item in items:
        table.add_row(
            str(item.get("id", "")),
            str(item.get("code", "")),
            str(item.get("name", "")),
            str(item.get("city", "")),
            str(item.get("manager_id", "")),
            str(len(item.get("tenants", []))),
            str(item.get("request_count", 0)),
            "yes" if item.get("is_active") else "no",
        )
    console.print(table)
    console.print(f"\n{result.data.get('count', len(items))} properties")


# ── Worker renderers ──────────────────────────────────────────────────


def _worker_fields(console: Console, d: dict[str, Any]) -> None:
    _fields(console, d, ("id", "name", "email", "specialization"))
    _field(console, "active", "yes" if d.get("is_active") else "no")
    _field(console, "available", "yes" if d.get("available") else "no")
    assignments = d.get("active_assignments", [])
    _field(console, "assignments", ", ".join(assignments) if assignments else "-")


def _render_worker(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    _worker_fields(console, result.data)


def _render_worker_table(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    items = result.data.get("items", [])
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("ID", style="rr.id", no_wrap=True)
    table.add_column("Name", style="rr.title")
    table.add_column("Email")
    table.add_column("Specialization")
    table.add_column("Load", justify="right")
    table.add_column("Available")
    for item in items:
        available = "yes" if item.get("available") else "no"
        if not item.get("is_active"):
            available = "inactive"
        table.add_row(
            str(item.get("id", "")),
            str(item.get("name", "")),
            str(item.get("email", "")),
            str(item.get("specialization", "")),
            str(len(item.get("active_assignments", []))),
            available,
        )
    console.print(table)
    console.print(f"\n{result.data.get('count', len(items))} workers")


def _render_candidates(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    items = d.get("items", [])
    console.print(
        f"Candidates for [rr.id]{d.get('request_id', '?')}[/rr.id] "
        f"({d.get('required_specialization', '?')}, fallback policy "
        f"{d.get('fallback_policy', '?')})"
    )
    if not items:
        console.print("  No eligible workers.")
        return
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Worker", style="rr.id", no_wrap=True)
    table.add_column("Name", style="rr.title")
    table.add_column("Specialization")
    table.add_column("Load", justify="right")
    table.add_column("Match")
    for item in items:
        match = str(item.get("match", ""))
        table.add_row(
            str(item.get("worker_id", "")),
            str(item.get("name", "")),
            str(item.get("specialization", "")),
            str(item.get("active_assignments", 0)),
            _styled(match, "rr.warning" if match != "exact" else ""),
        )
    console.print(table)


# ── Request renderers ─────────────────────────────────────────────────


def _request_fields(console: Console, d: dict[str, Any]) -> None:
    _fields(
        console,
        d,
        (
            "id",
            "status",
            "urgency",
            "required_specialization",
            "property_id",
            "tenant_id",
            "assigned_worker_id",
        ),
    )


def _render_request(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    lines = [
        f"status: {d.get('status', '')}",
        f"urgency: {d.get('urgency', '')}",
        f"requires: {d.get('required_specialization', '')}",
        f"property: {d.get('property_id', '')}  tenant: {d.get('tenant_id', '')}",
        f"worker: {d.get('assigned_worker_id') or '-'}",
        f"created: {d.get('created_at', '')}",
        "",
        str(d.get("description", "")).strip(),
    ]
    title = f"{d.get('id', '?')}"
    border = style_for_status(str(d.get("status", ""))) or "dim"
    console.print(Panel("\n".join(lines), title=title, border_style=border, expand=False))

    history = d.get("history", [])
    if history:
        table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
        table.add_column("At", style="dim")
        table.add_column("From")
        table.add_column("To")
        table.add_column("By", style="rr.id")
        table.add_column("Reason")
        for change in history:
            table.add_row(
                str(change.get("at", "")),
                str(change.get("from_status", "")),
                _styled(str(change.get("to_status", "")), style_for_status(change["to_status"])),
                str(change.get("actor_id", "")),
                str(change.get("reason") or ""),
            )
        console.print(table)


def _render_request_mutation(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    _status_line(console, result)
    _request_fields(console, result.data)
    released = result.data.get("released_worker")
    if released:
        _field(console, "released_worker", released.get("id", ""))


def _render_assignment(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    _request_fields(console, d.get("request", {}))
    previous = d.get("previous_worker")
    if previous:
        _field(console, "previous_worker", previous.get("id", ""))
    worker = d.get("worker", {})
    load = len(worker.get("active_assignments", []))
    _field(console, "worker_load", load)
    _field(console, "worker_available", "yes" if worker.get("available") else "no")


def _render_request_table(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    items = result.data.get("items", [])
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("ID", style="rr.id", no_wrap=True)
    table.add_column("Status")
    table.add_column("Urgency")
    table.add_column("Requires")
    table.add_column("Property")
    table.add_column("Worker")
    table.add_column("Description")
    if verbose:
        table.add_column("Created", style="dim")
    for item in items:
        status = str(item.get("status", ""))
        urgency = str(item.get("urgency", ""))
        description = str(item.get("description", ""))
        row: list[Any] = [
            str(item.get("id", "")),
            _styled(status, style_for_status(status)),
            _styled(urgency, style_for_urgency(urgency)),
            str(item.get("required_specialization", "")),
            str(item.get("property_id", "")),
            str(item.get("assigned_worker_id") or "-"),
            description if len(description) <= 48 else description[:45] + "...",
        ]
        if verbose:
            row.append(str(item.get("created_at", "")))
        table.add_row(*row)
    console.print(table)
    console.print(f"\n{result.data.get('count', len(items))} requests")


# ── Init renderer ─────────────────────────────────────────────────────


def _render_init(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    _fields(console, result.data, ("root", "database", "config_file"))


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, _json.dumps(value, separators=(",", ":")))
        else:
            _field(console, key, value)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Renderer] = {
    # Properties
    "register_property": _render_property_mutation,
    "register_tenant": _render_property_mutation,
    "deactivate_property": _render_property_mutation,
    "get_property": _render_property,
    "list_properties": _render_property_table,
    # Workers
    "register_worker": _render_worker,
    "change_specialization": _render_worker,
    "deactivate_worker": _render_worker,
    "activate_worker": _render_worker,
    "get_worker": _render_worker,
    "list_workers": _render_worker_table,
    # Requests
    "submit_request": _render_request_mutation,
    "get_request": _render_request,
    "begin_review": _render_request_mutation,
    "resume_review": _render_request_mutation,
    "start_work": _render_request_mutation,
    "complete": _render_request_mutation,
    "decline": _render_request_mutation,
    "escalate": _render_request_mutation,
    "list_requests": _render_request_table,
    "overdue": _render_request_table,
    # Assignment
    "find_eligible_workers": _render_candidates,
    "assign_worker": _render_assignment,
    "reassign_worker": _render_assignment,
    # Init
    "init_store": _render_init,
}
