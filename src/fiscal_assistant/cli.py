"""Developer console for the assistant pipeline.

Runs against in-memory collaborators, optionally seeded from a JSON fixture:

    {"tenant_id": "t1", "plan": "essential",
     "registration": {"external_id": "nf-1", "municipality_code": "3550308", ...},
     "counterparties": [{"name": "João Silva", "document": "12345678901"}],
     "invoices": [{"number": "1", "counterparty_name": "João Silva", "amount": 1500,
                   "status": "autorizada", "issued_at": "2026-10-01T12:00:00+00:00"}]}
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import orjson
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from fiscal_assistant.collaborators.cache import CachedFiscalRegistry
from fiscal_assistant.collaborators.memory import (
    InMemoryCounterpartyDirectory,
    InMemoryExecutionSink,
    InMemoryFiscalRegistry,
    InMemoryInvoiceHistory,
    InMemoryQuotaService,
    InMemoryTurnLog,
)
from fiscal_assistant.collaborators.records import (
    ConnectionHealth,
    Counterparty,
    FiscalRegistration,
    InvoiceRecord,
    InvoiceStatus,
    TaxRegime,
)
from fiscal_assistant.config import settings
from fiscal_assistant.execution.executor import ActionExecutor, confirm
from fiscal_assistant.intent.interpreter import interpret
from fiscal_assistant.intent.types import Utterance
from fiscal_assistant.responder.chain import DeterministicResponder
from fiscal_assistant.supervisor.orchestrator import CommandOrchestrator
from fiscal_assistant.telemetry.recorder import JsonlTurnLog
from fiscal_assistant.validation.validator import ActionValidator

app = typer.Typer()
console = Console()

_fixture_option = typer.Option(
    None, "--fixture", help="JSON file seeding clients, invoices and registration."
)
_no_llm_option = typer.Option(False, "--no-llm", help="Never delegate to the external model.")
_user_option = typer.Option("dev", "--user", help="User id for the turn log.")
_persist_option = typer.Option(
    False, "--persist", help="Write turns to JSONL files under TURN_LOG_DIR."
)


@dataclass
class Workspace:
    tenant_id: str
    directory: InMemoryCounterpartyDirectory
    history: InMemoryInvoiceHistory
    quota: InMemoryQuotaService
    registry: CachedFiscalRegistry
    sink: InMemoryExecutionSink


def _counterparty(tenant_id: str, raw: dict[str, Any]) -> Counterparty:
    document = "".join(ch for ch in str(raw["document"]) if ch.isdigit())
    return Counterparty(
        id=raw.get("id") or uuid.uuid4().hex,
        tenant_id=tenant_id,
        name=raw["name"],
        document=document,
        document_kind="cnpj" if len(document) == 14 else "cpf",
        aliases=tuple(raw.get("aliases", ())),
        email=raw.get("email"),
        phone=raw.get("phone"),
    )


def _invoice(tenant_id: str, raw: dict[str, Any]) -> InvoiceRecord:
    return InvoiceRecord(
        id=raw.get("id") or uuid.uuid4().hex,
        tenant_id=tenant_id,
        number=raw.get("number"),
        counterparty_id=raw.get("counterparty_id"),
        counterparty_name=raw.get("counterparty_name", ""),
        amount=float(raw["amount"]),
        status=InvoiceStatus(raw.get("status", "autorizada")),
        issued_at=datetime.fromisoformat(raw["issued_at"]),
        municipality_code=raw.get("municipality_code"),
        verification_code=raw.get("verification_code"),
        rejection_reason=raw.get("rejection_reason"),
    )


def _registration(tenant_id: str, raw: dict[str, Any]) -> FiscalRegistration:
    expires = raw.get("credential_expires_at")
    return FiscalRegistration(
        tenant_id=tenant_id,
        external_id=raw.get("external_id"),
        municipality_code=raw.get("municipality_code"),
        connection=ConnectionHealth(raw.get("connection", "healthy")),
        credential_present=bool(raw.get("credential_present", True)),
        credential_expires_at=datetime.fromisoformat(expires) if expires else None,
        regime=TaxRegime(raw.get("regime", "simples_nacional")),
        municipality_supported=raw.get("municipality_supported", True),
        municipality_name=raw.get("municipality_name"),
        company_name=raw.get("company_name"),
    )


def load_workspace(fixture: Path | None) -> Workspace:
    data: dict[str, Any] = orjson.loads(fixture.read_bytes()) if fixture else {}
    tenant_id = data.get("tenant_id", "default")
    history = InMemoryInvoiceHistory([_invoice(tenant_id, i) for i in data.get("invoices", [])])
    registrations = [_registration(tenant_id, data["registration"])] if "registration" in data else []
    return Workspace(
        tenant_id=tenant_id,
        directory=InMemoryCounterpartyDirectory(
            [_counterparty(tenant_id, c) for c in data.get("counterparties", [])]
        ),
        history=history,
        quota=InMemoryQuotaService(history, plans={tenant_id: data.get("plan", "trial")}),
        registry=CachedFiscalRegistry(InMemoryFiscalRegistry(registrations)),
        sink=InMemoryExecutionSink(history),
    )


@app.command()
def ask(text: str = typer.Argument(..., help="Utterance to interpret.")):
    """Show normalization, entities and intent scores for one utterance."""
    interp = interpret(text)
    console.print(f"[bold]Normalizado:[/bold] {interp.normalized}")
    ent = interp.entities
    console.print(
        f"[bold]Entidades:[/bold] valor={ent.amount} documento="
        f"{ent.document.formatted() if ent.document else None} "
        f"cliente={ent.counterparty_name} período={ent.period.token if ent.period else None}"
    )
    table = Table(title="Intenções")
    table.add_column("Intenção", style="cyan")
    table.add_column("Confiança", justify="right")
    for score in interp.classification.scores:
        table.add_row(score.intent.value, f"{score.confidence:.2f}")
    console.print(table)
    if interp.clarification.needed:
        console.print(Panel(interp.clarification.question, title="Esclarecimento"))


@app.command()
def chat(
    fixture: Optional[Path] = _fixture_option,
    no_llm: bool = _no_llm_option,
    user: str = _user_option,
    persist: bool = _persist_option,
):
    """Interactive conversation against in-memory collaborators."""
    if fixture is not None and not fixture.exists():
        console.print(f"[bold red]Fixture not found: {fixture}[/bold red]")
        raise typer.Exit(1)
    if no_llm:
        settings.USE_LLM = False

    ws = load_workspace(fixture)
    turn_log = JsonlTurnLog() if persist else InMemoryTurnLog()
    responder = DeterministicResponder(ws.directory, ws.history, ws.registry)
    orchestrator = CommandOrchestrator(responder, turn_log, registry=ws.registry)
    executor = ActionExecutor(
        ActionValidator(ws.quota, ws.registry, ws.history), ws.sink, ws.directory, turn_log
    )
    reg = ws.registry.registration(ws.tenant_id)
    municipality = reg.municipality_name if reg else None

    console.print("[bold green]Assistente fiscal[/bold green] (digite 'sair' para encerrar)")
    try:
        while True:
            text = console.input("[bold]Você:[/bold] ").strip()
            if text.lower() in {"sair", "exit", "quit"}:
                break
            utterance = Utterance(
                text=text, user_id=user, tenant_id=ws.tenant_id, municipality_name=municipality
            )
            record = orchestrator.handle(utterance)
            plan = record.plan
            console.print(
                f"[dim]{record.route.action.lower()} · {plan.intent.value} · "
                f"{record.interpretation.confidence:.2f} · {plan.source}[/dim]"
            )
            console.print(Panel(plan.explanation, title=plan.type))
            if not plan.requires_confirmation:
                continue
            reply = console.input("[bold]Confirma? (sim/não):[/bold] ")
            confirmation = confirm(plan, reply)
            if confirmation is None:
                console.print("[yellow]Ok, não vou prosseguir.[/yellow]")
                continue
            outcome = executor.execute(plan, utterance, confirmation)
            style = "green" if outcome.ok else "red"
            console.print(Panel(outcome.message, border_style=style))
    finally:
        orchestrator.close()


if __name__ == "__main__":
    app()
