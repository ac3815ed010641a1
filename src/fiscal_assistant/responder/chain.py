"""Deterministic responder: an ordered recognizer table and one dispatch loop.

Each recognizer names the surface patterns and the classifier intents that
trigger it, and the handler that builds the action plan. Order matters:
history queries, then client registration, then emission, then the fixed
responses. A handler may return ``None`` to let the chain continue.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timezone
from typing import Any, Callable, Sequence

from fiscal_assistant.collaborators.base import (
    CounterpartyDirectory,
    FiscalRegistry,
    InvoiceHistory,
)
from fiscal_assistant.collaborators.records import (
    ConnectionHealth,
    Counterparty,
    InvoiceStatus,
)
from fiscal_assistant.config import settings
from fiscal_assistant.intent.catalog import rule_for
from fiscal_assistant.intent.disambiguation import GENERIC_CLARIFICATION
from fiscal_assistant.intent.entities import (
    extract_counterparty_name,
    extract_document,
)
from fiscal_assistant.intent.interpreter import Interpretation
from fiscal_assistant.intent.types import (
    ActionPlan,
    ExtractedEntities,
    IntentTag,
    Period,
)
from fiscal_assistant.logging import get_logger
from fiscal_assistant.utils.formatting import format_brl, format_date

from . import messages, patterns
from .patterns import PatternRule, match_first

logger = get_logger(__name__)

DEFAULT_SERVICE_DESCRIPTION = "Serviço prestado"


@dataclass
class ResponderRequest:
    """Everything a handler may look at for one turn."""

    text: str
    normalized: str
    entities: ExtractedEntities
    tenant_id: str = "default"
    intent: IntentTag = IntentTag.UNKNOWN
    groups: dict[str, Any] = field(default_factory=dict)
    arguments: dict[str, Any] = field(default_factory=dict)  # from the model, if any
    active_counterparty_id: str | None = None


@dataclass(frozen=True)
class Recognizer:
    name: str
    handler: str  # DeterministicResponder method name
    patterns: tuple[PatternRule, ...] = ()
    intents: frozenset[IntentTag] = frozenset()


def _r(name: str, rules: Sequence[PatternRule], *intents: IntentTag) -> Recognizer:
    return Recognizer(name=name, handler=f"_handle_{name}", patterns=tuple(rules), intents=frozenset(intents))


RECOGNIZERS: tuple[Recognizer, ...] = (
    # (1) invoice history, read-only
    _r("last_invoice", patterns.LAST_INVOICE, IntentTag.LAST_INVOICE),
    _r("rejected_invoices", patterns.REJECTED_INVOICES, IntentTag.REJECTED_INVOICES),
    _r("pending_invoices", patterns.PENDING_INVOICES, IntentTag.PENDING_INVOICES),
    _r("invoice_status", patterns.INVOICE_STATUS, IntentTag.INVOICE_STATUS),
    _r("invoice_count", patterns.INVOICE_COUNT),
    _r("invoices_by_counterparty", patterns.INVOICES_BY_COUNTERPARTY),
    _r("list_invoices", patterns.LIST_INVOICES, IntentTag.LIST_INVOICES),
    # (2) client registration
    _r("name_with_document", patterns.NAME_WITH_DOCUMENT),
    _r("create_client", patterns.CREATE_CLIENT, IntentTag.CREATE_CLIENT),
    _r("list_clients", patterns.LIST_CLIENTS, IntentTag.LIST_CLIENTS),
    _r("search_client", patterns.SEARCH_CLIENT, IntentTag.SEARCH_CLIENT),
    # (3) emission
    _r("emit_invoice", patterns.EMIT_INVOICE, IntentTag.EMIT_INVOICE),
    # (4) fixed responses
    _r("cancel_invoice", patterns.CANCEL_INVOICE, IntentTag.CANCEL_INVOICE),
    _r("revenue", patterns.REVENUE, IntentTag.REVENUE_QUERY),
    _r("pay_tax", patterns.PAY_TAX, IntentTag.PAY_TAX),
    _r("generate_tax", patterns.GENERATE_TAX, IntentTag.GENERATE_TAX),
    _r("view_taxes", patterns.VIEW_TAXES, IntentTag.VIEW_TAXES),
    _r("check_connection", patterns.CHECK_CONNECTION, IntentTag.CHECK_CONNECTION),
    _r("help", patterns.HELP, IntentTag.HELP),
    _r("greeting", patterns.GREETING, IntentTag.GREETING),
)

PRIORITY_RECOGNIZERS = frozenset(
    {
        "last_invoice",
        "rejected_invoices",
        "pending_invoices",
        "invoice_status",
        "invoice_count",
        "invoices_by_counterparty",
        "list_invoices",
        "name_with_document",
        "create_client",
        "emit_invoice",
        "view_taxes",
        "pay_tax",
        "generate_tax",
        "help",
        "greeting",
    }
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_datetime(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def _read_only_plan(type_: str, intent: IntentTag, explanation: str, **data: Any) -> ActionPlan:
    return ActionPlan(
        type=type_,
        data=data,
        explanation=explanation,
        requires_confirmation=False,
        intent=intent,
    )


def match_priority_pattern(raw: str, normalized: str) -> str | None:
    """Name of the first high-priority recognizer whose surface pattern hits."""
    for rec in RECOGNIZERS:
        if rec.name in PRIORITY_RECOGNIZERS and match_first(rec.patterns, raw, normalized):
            return rec.name
    return None


class DeterministicResponder:
    def __init__(
        self,
        directory: CounterpartyDirectory,
        history: InvoiceHistory,
        registry: FiscalRegistry | None = None,
        clock: Callable[[], datetime] = _utcnow,
        recognizers: Sequence[Recognizer] = RECOGNIZERS,
    ) -> None:
        self.directory = directory
        self.history = history
        self.registry = registry
        self._clock = clock
        self.recognizers = tuple(recognizers)

    # -- dispatch ---------------------------------------------------------

    def respond(
        self,
        interp: Interpretation,
        tenant_id: str = "default",
        active_counterparty_id: str | None = None,
    ) -> ActionPlan:
        """Walk the recognizer chain; never raises for user input."""
        if not interp.text:
            return self.menu()

        top = interp.classification.top
        trusted = (
            top.confidence >= settings.CLARIFY_CONFIDENCE_TAU
            and not interp.clarification.needed
        )
        for rec in self.recognizers:
            hit = match_first(rec.patterns, interp.text, interp.normalized)
            if hit is None and not (trusted and top.intent in rec.intents):
                continue
            request = ResponderRequest(
                text=interp.text,
                normalized=interp.normalized,
                entities=interp.entities,
                tenant_id=tenant_id,
                intent=next(iter(rec.intents), top.intent) if hit else top.intent,
                groups=hit.groups if hit else {},
                active_counterparty_id=active_counterparty_id,
            )
            plan = getattr(self, rec.handler)(request)
            if plan is not None:
                logger.debug(f"recognizer {rec.name} -> {plan.type}")
                return plan

        if interp.clarification.needed and interp.clarification.options:
            return _read_only_plan(
                "clarify",
                IntentTag.UNKNOWN,
                interp.clarification.question,
                options=[o.value for o in interp.clarification.options],
            )
        return self.menu()

    def plan_for(self, request: ResponderRequest) -> ActionPlan | None:
        """Build the plan for an intent decided elsewhere (the model path)."""
        for rec in self.recognizers:
            if request.intent in rec.intents:
                return getattr(self, rec.handler)(request)
        return None

    def menu(self) -> ActionPlan:
        return _read_only_plan("menu", IntentTag.UNKNOWN, GENERIC_CLARIFICATION)

    # -- helpers ----------------------------------------------------------

    def _period_range(self, period: Period | None, default: Period | None = None) -> tuple[datetime | None, datetime | None, str]:
        period = period or default
        if period is None:
            return None, None, ""
        start, end = period.date_range(self._clock().date())
        return _as_datetime(start), _as_datetime(end), messages.period_label(period.kind, period.value)

    @staticmethod
    def _period_from_args(request: ResponderRequest) -> Period | None:
        token = request.arguments.get("period")
        mapping = {
            "hoje": Period("today"),
            "ontem": Period("yesterday"),
            "semana": Period("this_week"),
            "mes": Period("this_month"),
            "mes_passado": Period("last_month"),
            "ano": Period("this_year"),
        }
        return mapping.get(token) if token else request.entities.period

    def _resolve_counterparty(self, request: ResponderRequest, name: str | None) -> list[Counterparty]:
        if name:
            return self.directory.search(request.tenant_id, name)
        if request.active_counterparty_id:
            cp = self.directory.get(request.tenant_id, request.active_counterparty_id)
            return [cp] if cp else []
        return []

    # -- (1) history ------------------------------------------------------

    def _handle_last_invoice(self, request: ResponderRequest) -> ActionPlan:
        inv = self.history.latest(request.tenant_id)
        if inv is None:
            return _read_only_plan(
                "last_invoice",
                IntentTag.LAST_INVOICE,
                "Você ainda não emitiu nenhuma nota fiscal.",
                invoice=None,
            )
        return _read_only_plan(
            "last_invoice",
            IntentTag.LAST_INVOICE,
            "Sua última nota:\n\n" + messages.invoice_line(inv),
            invoice={
                "id": inv.id,
                "number": inv.number,
                "counterparty_name": inv.counterparty_name,
                "amount": inv.amount,
                "status": inv.status.value,
                "issued_at": inv.issued_at.isoformat(),
            },
        )

    def _status_listing(
        self, request: ResponderRequest, status: InvoiceStatus, intent: IntentTag, title: str, empty: str
    ) -> ActionPlan:
        start, end, label = self._period_range(self._period_from_args(request))
        found = self.history.find(request.tenant_id, status=status, start=start, end=end)
        suffix = f" {label}" if label else ""
        return _read_only_plan(
            intent.value,
            intent,
            messages.invoice_list(title + suffix + ":", found, empty + suffix + "."),
            invoice_ids=[inv.id for inv in found],
            count=len(found),
        )

    def _handle_rejected_invoices(self, request: ResponderRequest) -> ActionPlan:
        return self._status_listing(
            request,
            InvoiceStatus.REJECTED,
            IntentTag.REJECTED_INVOICES,
            "Notas rejeitadas",
            "Nenhuma nota rejeitada",
        )

    def _handle_pending_invoices(self, request: ResponderRequest) -> ActionPlan:
        return self._status_listing(
            request,
            InvoiceStatus.PROCESSING,
            IntentTag.PENDING_INVOICES,
            "Notas em processamento",
            "Nenhuma nota pendente",
        )

    def _handle_invoice_status(self, request: ResponderRequest) -> ActionPlan:
        number = request.groups.get("number") or request.arguments.get("invoice_id")
        if not number:
            return _read_only_plan(
                "request_invoice_number",
                IntentTag.INVOICE_STATUS,
                "Qual o número da nota que você quer consultar?",
            )
        inv = self.history.by_number(request.tenant_id, str(number))
        if inv is None:
            return _read_only_plan(
                "invoice_status",
                IntentTag.INVOICE_STATUS,
                f"Não encontrei a nota {number}.",
                number=str(number),
                status=None,
            )
        text = (
            f"A nota {inv.number} para {inv.counterparty_name} "
            f"({format_brl(inv.amount)}) está "
            f"{messages.STATUS_LABELS.get(inv.status.value, inv.status.value)}."
        )
        if inv.status is InvoiceStatus.REJECTED and inv.rejection_reason:
            text += f" Motivo: {inv.rejection_reason}"
        return _read_only_plan(
            "invoice_status",
            IntentTag.INVOICE_STATUS,
            text,
            number=inv.number,
            invoice_id=inv.id,
            status=inv.status.value,
        )

    def _handle_invoice_count(self, request: ResponderRequest) -> ActionPlan:
        start, end, label = self._period_range(request.entities.period, Period("this_month"))
        count = self.history.count(request.tenant_id, start=start, end=end)
        noun = "nota" if count == 1 else "notas"
        return _read_only_plan(
            "invoice_count",
            IntentTag.LIST_INVOICES,
            f"Você emitiu {count} {noun} {label}.",
            count=count,
        )

    def _handle_invoices_by_counterparty(self, request: ResponderRequest) -> ActionPlan | None:
        name = request.entities.counterparty_name
        if not name:
            return None
        candidates = self.directory.search(request.tenant_id, name)
        if not candidates:
            return _read_only_plan(
                "list_invoices",
                IntentTag.LIST_INVOICES,
                f"Não encontrei o cliente \"{name}\".",
                counterparty_name=name,
                invoice_ids=[],
            )
        start, end, _ = self._period_range(request.entities.period)
        found = []
        for cp in candidates:
            found.extend(
                self.history.find(request.tenant_id, counterparty_id=cp.id, start=start, end=end)
            )
        return _read_only_plan(
            "list_invoices",
            IntentTag.LIST_INVOICES,
            messages.invoice_list(
                f"Notas de {candidates[0].name if len(candidates) == 1 else name}:",
                found,
                f"Nenhuma nota encontrada para {name}.",
            ),
            counterparty_ids=[cp.id for cp in candidates],
            invoice_ids=[inv.id for inv in found],
        )

    def _handle_list_invoices(self, request: ResponderRequest) -> ActionPlan:
        if request.arguments.get("client_name"):
            by_name = replace(
                request,
                entities=replace(request.entities, counterparty_name=request.arguments["client_name"]),
            )
            plan = self._handle_invoices_by_counterparty(by_name)
            if plan is not None:
                return plan
        status_arg = request.arguments.get("status")
        status = InvoiceStatus(status_arg) if status_arg in {s.value for s in InvoiceStatus} else None
        limit = int(request.arguments.get("limit") or 10)
        start, end, label = self._period_range(self._period_from_args(request))
        found = self.history.find(request.tenant_id, status=status, start=start, end=end, limit=limit)
        suffix = f" {label}" if label else ""
        return _read_only_plan(
            "list_invoices",
            IntentTag.LIST_INVOICES,
            messages.invoice_list(
                f"Suas notas{suffix}:", found, f"Nenhuma nota encontrada{suffix}."
            ),
            invoice_ids=[inv.id for inv in found],
        )

    # -- (2) clients ------------------------------------------------------

    def _existing_or_proposal(self, request: ResponderRequest, name: str, document: str) -> ActionPlan:
        existing = self.directory.find_by_document(request.tenant_id, document)
        if existing is not None:
            return _read_only_plan(
                "client_exists",
                IntentTag.CREATE_CLIENT,
                f"O cliente {existing.name} já está cadastrado com este documento.",
                counterparty=existing.id,
                counterparty_name=existing.name,
            )
        doc = extract_document(document)
        kind = doc.kind if doc else ("cnpj" if len(document) == 14 else "cpf")
        shown = doc.formatted() if doc else document
        return ActionPlan(
            type="create_client",
            data={
                "name": name,
                "document": document,
                "document_kind": kind,
                "email": request.arguments.get("email"),
                "phone": request.arguments.get("phone"),
            },
            explanation=(
                f"Vou cadastrar o cliente {name} ({kind.upper()} {shown}). Confirma?"
            ),
            requires_confirmation=True,
            intent=IntentTag.CREATE_CLIENT,
        )

    def _handle_name_with_document(self, request: ResponderRequest) -> ActionPlan | None:
        # "emitir nota para X cpf ..." belongs to emission
        if match_first(patterns.EMIT_INVOICE, request.text, request.normalized):
            return None
        doc = extract_document(request.groups.get("document", ""))
        if doc is None:
            return None
        name = request.entities.counterparty_name or request.groups.get("name", "").strip()
        if not name:
            return None
        return self._existing_or_proposal(request, name, doc.value)

    def _handle_create_client(self, request: ResponderRequest) -> ActionPlan:
        name = request.arguments.get("name") or request.entities.counterparty_name
        document = request.arguments.get("document")
        doc = extract_document(document) if document else request.entities.document
        if name and doc:
            return self._existing_or_proposal(request, name, doc.value)
        if doc:
            return _read_only_plan(
                "request_client_name",
                IntentTag.CREATE_CLIENT,
                "Qual o nome ou razão social do cliente?",
                document=doc.value,
            )
        return _read_only_plan(
            "request_client_document",
            IntentTag.CREATE_CLIENT,
            (
                f"Qual o CPF ou CNPJ de {name}?"
                if name
                else "Para cadastrar o cliente, me envie o nome e o CPF ou CNPJ."
            ),
            name=name,
        )

    def _handle_list_clients(self, request: ResponderRequest) -> ActionPlan:
        search = request.arguments.get("search")
        items = (
            self.directory.search(request.tenant_id, search)
            if search
            else self.directory.list_all(request.tenant_id)
        )
        return _read_only_plan(
            "list_clients",
            IntentTag.LIST_CLIENTS,
            messages.counterparty_list(
                "Seus clientes:", items, "Você ainda não tem clientes cadastrados."
            ),
            counterparty_ids=[cp.id for cp in items],
        )

    def _handle_search_client(self, request: ResponderRequest) -> ActionPlan:
        query = request.arguments.get("query")
        doc = extract_document(query) if query else request.entities.document
        if doc is not None:
            found = self.directory.find_by_document(request.tenant_id, doc.value)
            items = [found] if found else []
        else:
            name = query or request.entities.counterparty_name or extract_counterparty_name(request.text)
            if not name:
                return _read_only_plan(
                    "request_search_query",
                    IntentTag.SEARCH_CLIENT,
                    "Qual cliente você quer buscar? Informe o nome ou o CPF/CNPJ.",
                )
            items = self.directory.search(request.tenant_id, name)
        return _read_only_plan(
            "search_client",
            IntentTag.SEARCH_CLIENT,
            messages.counterparty_list("Encontrei:", items, "Nenhum cliente encontrado."),
            counterparty_ids=[cp.id for cp in items],
        )

    # -- (3) emission -----------------------------------------------------

    def _handle_emit_invoice(self, request: ResponderRequest) -> ActionPlan:
        args = request.arguments
        amount = args.get("value", request.entities.amount)
        name = args.get("client_name") or request.entities.counterparty_name
        document = args.get("client_document")
        doc = extract_document(document) if document else request.entities.document

        missing = []
        if not amount or amount <= 0:
            missing.append("amount")
        if not name and doc is None and not request.active_counterparty_id:
            missing.append("counterparty")
        if missing:
            if missing == ["amount"]:
                question = "Qual o valor do serviço?"
            elif missing == ["counterparty"]:
                question = "Para qual cliente é a nota?"
            else:
                question = "Para emitir a nota, preciso do valor e do cliente. Pode me informar?"
            return _read_only_plan(
                "request_emission_details",
                IntentTag.EMIT_INVOICE,
                question,
                missing=missing,
                amount=amount,
                counterparty_name=name,
            )

        # An explicit document wins over the name for the lookup.
        if doc is not None:
            found = self.directory.find_by_document(request.tenant_id, doc.value)
            candidates = [found] if found else []
        else:
            candidates = self._resolve_counterparty(request, name)

        if not candidates:
            label = name or (doc.formatted() if doc else "o cliente")
            return _read_only_plan(
                "register_counterparty",
                IntentTag.EMIT_INVOICE,
                (
                    f"Não encontrei \"{label}\" nos seus clientes. "
                    "Me envie o nome e o CPF ou CNPJ para cadastrar e depois emitimos a nota."
                ),
                counterparty_name=name,
                counterparty_document=doc.value if doc else None,
                amount=float(amount),
                then="emit_invoice",
            )
        if len(candidates) > 1:
            options = "\n".join(
                f"{i}. {messages.counterparty_line(cp)[2:]}"
                for i, cp in enumerate(candidates, start=1)
            )
            return _read_only_plan(
                "choose_counterparty",
                IntentTag.EMIT_INVOICE,
                f"Encontrei mais de um cliente para \"{name}\":\n{options}\n\nQual deles?",
                candidates=[cp.id for cp in candidates],
                amount=float(amount),
            )

        cp = candidates[0]
        service = (
            args.get("service_description")
            or request.entities.service_description
            or DEFAULT_SERVICE_DESCRIPTION
        )
        return ActionPlan(
            type="emit_invoice",
            data={
                "amount": float(amount),
                "counterparty": cp.id,
                "counterparty_name": cp.name,
                "counterparty_document": cp.document,
                "service_description": service,
                "service_code": args.get("service_code") or settings.DEFAULT_SERVICE_CODE,
                "iss_rate": args.get("iss_rate"),
            },
            explanation=(
                f"Entendi! Vou preparar uma nota fiscal de {format_brl(float(amount))} "
                f"para {cp.name}. Por favor, confirme os dados."
            ),
            requires_confirmation=rule_for(IntentTag.EMIT_INVOICE).requires_confirmation,
            intent=IntentTag.EMIT_INVOICE,
        )

    # -- (4) fixed responses ----------------------------------------------

    def _handle_cancel_invoice(self, request: ResponderRequest) -> ActionPlan:
        number = request.arguments.get("invoice_id")
        if not number:
            m = patterns.CANCEL_NUMBER_RE.search(request.normalized)
            number = m.group(1) if m else None
        justification = request.arguments.get("reason")
        if not justification:
            m = patterns.JUSTIFICATION_RE.search(request.text)
            justification = m.group(1).strip() if m else ""
        if not number:
            return _read_only_plan(
                "request_cancellation_details",
                IntentTag.CANCEL_INVOICE,
                "Qual o número da nota que você quer cancelar? Informe também o motivo.",
            )
        inv = self.history.by_number(request.tenant_id, str(number))
        if inv is None:
            return _read_only_plan(
                "invoice_not_found",
                IntentTag.CANCEL_INVOICE,
                f"Não encontrei a nota {number}.",
                number=str(number),
            )
        return ActionPlan(
            type="cancel_invoice",
            data={
                "invoice_id": inv.id,
                "invoice_number": inv.number,
                "counterparty_name": inv.counterparty_name,
                "amount": inv.amount,
                "justification": justification,
            },
            explanation=(
                f"Vou cancelar a nota {inv.number} de {format_brl(inv.amount)} "
                f"para {inv.counterparty_name}, emitida em {format_date(inv.issued_at)}. Confirma?"
            ),
            requires_confirmation=rule_for(IntentTag.CANCEL_INVOICE).requires_confirmation,
            intent=IntentTag.CANCEL_INVOICE,
        )

    def _handle_revenue(self, request: ResponderRequest) -> ActionPlan:
        start, end, label = self._period_range(self._period_from_args(request), Period("this_month"))
        total = self.history.total(request.tenant_id, start=start, end=end)
        count = self.history.count(
            request.tenant_id, start=start, end=end, status=InvoiceStatus.AUTHORIZED
        )
        text = f"Seu faturamento {label}: {format_brl(total)} em {count} nota(s)."
        if count:
            text += f" Média por nota: {format_brl(total / count)}."
        return _read_only_plan("revenue_query", IntentTag.REVENUE_QUERY, text, total=total, count=count)

    def _handle_pay_tax(self, request: ResponderRequest) -> ActionPlan:
        return _read_only_plan("pay_tax", IntentTag.PAY_TAX, messages.PAY_TAX_TEXT)

    def _handle_generate_tax(self, request: ResponderRequest) -> ActionPlan:
        return _read_only_plan("generate_tax", IntentTag.GENERATE_TAX, messages.GENERATE_TAX_TEXT)

    def _handle_view_taxes(self, request: ResponderRequest) -> ActionPlan:
        return _read_only_plan("view_taxes", IntentTag.VIEW_TAXES, messages.TAXES_TEXT)

    def _handle_check_connection(self, request: ResponderRequest) -> ActionPlan:
        reg = self.registry.registration(request.tenant_id) if self.registry else None
        if reg is None or not reg.external_id:
            text = "Sua empresa ainda não está registrada para emissão de notas."
            status = "not_registered"
        elif reg.connection is ConnectionHealth.HEALTHY:
            where = f" de {reg.municipality_name}" if reg.municipality_name else ""
            text = f"Conexão com a prefeitura{where} funcionando normalmente."
            status = reg.connection.value
        elif reg.connection is ConnectionHealth.FAILED:
            text = "A última verificação de conexão com a prefeitura falhou. Verifique suas credenciais."
            status = reg.connection.value
        else:
            text = "Sua empresa ainda não está conectada à prefeitura."
            status = reg.connection.value
        return _read_only_plan("check_connection", IntentTag.CHECK_CONNECTION, text, status=status)

    def _handle_help(self, request: ResponderRequest) -> ActionPlan:
        return _read_only_plan("help", IntentTag.HELP, messages.HELP_TEXT)

    def _handle_greeting(self, request: ResponderRequest) -> ActionPlan:
        return _read_only_plan("greeting", IntentTag.GREETING, messages.GREETING_TEXT)
