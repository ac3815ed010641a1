import pytest
from conftest import TENANT
from fiscal_assistant.intent.interpreter import interpret
from fiscal_assistant.intent.types import ActionPlan, IntentTag
from fiscal_assistant.responder.chain import (
    DEFAULT_SERVICE_DESCRIPTION,
    DeterministicResponder,
    ResponderRequest,
    match_priority_pattern,
)


def _respond(responder: DeterministicResponder, text: str) -> ActionPlan:
    return responder.respond(interpret(text), tenant_id=TENANT)


@pytest.mark.parametrize(
    ("text", "plan_type"),
    [
        ("Qual foi minha última nota?", "last_invoice"),
        ("notas rejeitadas", "rejected_invoices"),
        ("tenho notas pendentes?", "pending_invoices"),
        ("status da nota 101", "invoice_status"),
        ("quantas notas este mês", "invoice_count"),
        ("listar minhas notas", "list_invoices"),
        ("meus clientes", "list_clients"),
        ("quanto faturei este mês", "revenue_query"),
        ("ver impostos", "view_taxes"),
        ("pagar das", "pay_tax"),
        ("gerar das", "generate_tax"),
        ("verificar conexão", "check_connection"),
        ("preciso de ajuda", "help"),
        ("bom dia", "greeting"),
    ],
)
def test_read_only_plans_never_require_confirmation(
    responder: DeterministicResponder, text: str, plan_type: str
) -> None:
    plan = _respond(responder, text)
    assert plan.type == plan_type
    assert plan.requires_confirmation is False


def test_last_invoice(responder: DeterministicResponder) -> None:
    plan = _respond(responder, "minha última nota")
    assert plan.data["invoice"]["number"] == "103"
    assert "Nota 103" in plan.explanation


def test_status_listing_and_counts(responder: DeterministicResponder) -> None:
    assert _respond(responder, "notas rejeitadas").data["count"] == 1
    assert _respond(responder, "quantas notas este mês").data["count"] == 4
    revenue = _respond(responder, "quanto faturei este mês")
    assert revenue.data == {"total": 2000.0, "count": 2}


def test_invoice_status_without_number_asks_for_it(responder: DeterministicResponder) -> None:
    plan = responder.plan_for(
        ResponderRequest(
            text="status",
            normalized="status",
            entities=interpret("status").entities,
            tenant_id=TENANT,
            intent=IntentTag.INVOICE_STATUS,
        )
    )
    assert plan is not None
    assert plan.type == "request_invoice_number"


def test_invoices_by_counterparty(responder: DeterministicResponder) -> None:
    plan = _respond(responder, "notas do João Silva")
    assert plan.type == "list_invoices"
    assert set(plan.data["invoice_ids"]) == {"inv-101", "inv-90"}


def test_emit_invoice_resolves_single_counterparty(responder: DeterministicResponder) -> None:
    plan = _respond(responder, "Emitir nota de R$ 1.500 para João Silva")
    assert plan.type == "emit_invoice"
    assert plan.requires_confirmation is True
    assert plan.intent == IntentTag.EMIT_INVOICE
    assert plan.data["counterparty"] == "cp-joao"
    assert plan.data["amount"] == 1500.0
    assert plan.data["service_description"] == DEFAULT_SERVICE_DESCRIPTION
    assert "R$ 1.500,00" in plan.explanation


def test_emit_invoice_matches_alias(responder: DeterministicResponder) -> None:
    plan = _respond(responder, "emitir nota de 2 mil para Empresa ABC")
    assert plan.type == "emit_invoice"
    assert plan.data["counterparty"] == "cp-abc"
    assert plan.data["amount"] == 2000.0


def test_emit_invoice_by_document(responder: DeterministicResponder) -> None:
    plan = _respond(responder, "emitir nota de 300 reais para cnpj 11.222.333/0001-81")
    assert plan.type == "emit_invoice"
    assert plan.data["counterparty"] == "cp-maria"


def test_emit_invoice_ambiguous_counterparty(responder: DeterministicResponder) -> None:
    plan = _respond(responder, "Emitir nota de R$ 500 para Ana")
    assert plan.type == "choose_counterparty"
    assert plan.requires_confirmation is False
    assert set(plan.data["candidates"]) == {"cp-ana-l", "cp-ana-c"}


def test_emit_invoice_unknown_counterparty(responder: DeterministicResponder) -> None:
    plan = _respond(responder, "Emitir nota de R$ 500 para Pedro Alves")
    assert plan.type == "register_counterparty"
    assert plan.requires_confirmation is False
    assert plan.data["counterparty_name"] == "Pedro Alves"
    assert plan.data["amount"] == 500.0


def test_emit_invoice_missing_details(responder: DeterministicResponder) -> None:
    plan = _respond(responder, "emitir nota")
    assert plan.type == "request_emission_details"
    assert plan.data["missing"] == ["amount", "counterparty"]


def test_emit_invoice_uses_active_counterparty(responder: DeterministicResponder) -> None:
    plan = responder.respond(
        interpret("emitir nota de 750 reais"), tenant_id=TENANT, active_counterparty_id="cp-maria"
    )
    assert plan.type == "emit_invoice"
    assert plan.data["counterparty"] == "cp-maria"


def test_name_with_document_proposes_new_client(responder: DeterministicResponder) -> None:
    plan = _respond(responder, "Carlos Pereira 529.982.247-25")
    assert plan.type == "create_client"
    assert plan.requires_confirmation is True
    assert plan.data["name"] == "Carlos Pereira"
    assert plan.data["document"] == "52998224725"
    assert plan.data["document_kind"] == "cpf"


def test_name_with_existing_document(responder: DeterministicResponder) -> None:
    plan = _respond(responder, "João Silva cpf 123.456.789-01")
    assert plan.type == "client_exists"
    assert plan.requires_confirmation is False
    assert plan.data["counterparty"] == "cp-joao"


def test_create_client_asks_for_document(responder: DeterministicResponder) -> None:
    plan = _respond(responder, "cadastrar cliente Bruno Dias")
    assert plan.type == "request_client_document"
    assert plan.data["name"] == "Bruno Dias"


def test_cancel_invoice_plan(responder: DeterministicResponder) -> None:
    plan = _respond(responder, "cancelar nota 101 porque o serviço não foi prestado")
    assert plan.type == "cancel_invoice"
    assert plan.requires_confirmation is True
    assert plan.data["invoice_id"] == "inv-101"
    assert plan.data["justification"] == "o serviço não foi prestado"


def test_cancel_invoice_unknown_number(responder: DeterministicResponder) -> None:
    plan = _respond(responder, "cancelar nota 999")
    assert plan.type == "invoice_not_found"
    assert plan.requires_confirmation is False


def test_empty_and_unrecognized_input_get_the_menu(responder: DeterministicResponder) -> None:
    assert _respond(responder, "").type == "menu"
    assert _respond(responder, "xyzzy plugh").type == "menu"


def test_plan_for_model_arguments(responder: DeterministicResponder) -> None:
    request = ResponderRequest(
        text="faz aquela nota",
        normalized="faz aquela nota",
        entities=interpret("faz aquela nota").entities,
        tenant_id=TENANT,
        intent=IntentTag.EMIT_INVOICE,
        arguments={"value": 300.0, "client_name": "Maria Souza", "iss_rate": 3.0},
    )
    plan = responder.plan_for(request)
    assert plan is not None
    assert plan.data["counterparty"] == "cp-maria"
    assert plan.data["iss_rate"] == 3.0


def test_create_client_keeps_number_words_in_name(responder: DeterministicResponder) -> None:
    plan = _respond(responder, "cadastrar cliente Sete Lagoas Consultoria cnpj 45.723.174/0001-10")
    assert plan.type == "create_client"
    assert plan.data["name"] == "Sete Lagoas Consultoria"
    assert plan.data["document"] == "45723174000110"


def test_list_invoices_by_model_client_name_leaves_entities_alone(
    responder: DeterministicResponder,
) -> None:
    entities = interpret("listar minhas notas").entities
    request = ResponderRequest(
        text="listar minhas notas",
        normalized="listar minhas notas",
        entities=entities,
        tenant_id=TENANT,
        intent=IntentTag.LIST_INVOICES,
        arguments={"client_name": "João Silva"},
    )
    plan = responder.plan_for(request)
    assert plan is not None
    assert set(plan.data["invoice_ids"]) == {"inv-101", "inv-90"}
    assert entities.counterparty_name is None


def test_priority_patterns() -> None:
    assert match_priority_pattern("oi", "oi") == "greeting"
    assert match_priority_pattern("emitir nota de 10", "emitir nota de 10") == "emit_invoice"
    assert match_priority_pattern("quanto faturei", "quanto faturei") is None
