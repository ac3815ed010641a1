"""Declarative intent catalog.

One record per intent: the vocabulary the classifier scores against, the
label used in clarification questions, and the operation (with typed
parameters) offered to the external model. Adding an intent is a change to
``INTENT_CATALOG`` only.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import cached_property

from .types import IntentTag


@dataclass(frozen=True)
class ParamSpec:
    name: str
    type: str = "string"  # "string"|"number"|"integer"
    description: str = ""
    required: bool = False
    enum: tuple[str, ...] = ()


@dataclass(frozen=True)
class IntentRule:
    intent: IntentTag
    keywords: tuple[str, ...] = ()
    phrases: tuple[str, ...] = ()
    context: tuple[str, ...] = ()
    negative_context: tuple[str, ...] = ()
    weight: float = 1.0
    exact_match: bool = False
    # Penalize like a negative-context word when a CPF/CNPJ is in the text.
    document_guard: bool = False
    description: str | None = None
    operation: str | None = None
    operation_description: str = ""
    params: tuple[ParamSpec, ...] = ()
    read_only: bool = True

    @property
    def requires_confirmation(self) -> bool:
        return not self.read_only

    @cached_property
    def _compiled(self) -> dict[str, tuple[re.Pattern[str], ...]]:
        def words(items: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
            return tuple(re.compile(r"(?<!\w)" + re.escape(w) + r"(?!\w)") for w in items)

        return {
            "phrases": words(self.phrases),
            "keywords": words(self.keywords),
            "context": words(self.context),
            "negative": words(self.negative_context),
        }

    def matches(self, kind: str, text: str) -> int:
        return sum(1 for p in self._compiled[kind] if p.search(text))


_PERIOD_ENUM = ("hoje", "ontem", "semana", "mes", "mes_passado", "ano")

INTENT_CATALOG: tuple[IntentRule, ...] = (
    IntentRule(
        intent=IntentTag.EMIT_INVOICE,
        keywords=("emitir", "emissão", "gerar", "criar", "nova", "fazer"),
        phrases=(
            "emitir nota",
            "nova nota",
            "gerar nota",
            "criar nota",
            "fazer nota",
            "emissão de nota",
        ),
        context=("nota", "fiscal", "serviço"),
        weight=1.0,
        description="emitir uma nota fiscal",
        operation="emit_invoice",
        operation_description="Emitir uma nota fiscal de serviço (NFS-e).",
        params=(
            ParamSpec("client_name", description="Nome do cliente/tomador"),
            ParamSpec("client_document", description="CPF ou CNPJ do cliente"),
            ParamSpec("value", "number", "Valor do serviço em reais", required=True),
            ParamSpec("service_description", description="Descrição do serviço"),
            ParamSpec("service_code", description="Código do serviço municipal"),
            ParamSpec("iss_rate", "number", "Alíquota de ISS em %"),
        ),
        read_only=False,
    ),
    IntentRule(
        intent=IntentTag.CANCEL_INVOICE,
        keywords=("cancelar", "anular", "estornar"),
        phrases=("cancelar nota", "anular nota", "estornar nota", "cancelar a nota"),
        context=("nota", "fiscal"),
        weight=1.0,
        description="cancelar uma nota fiscal",
        operation="cancel_invoice",
        operation_description="Cancelar uma nota fiscal autorizada.",
        params=(
            ParamSpec("invoice_id", description="Número ou ID da nota", required=True),
            ParamSpec("reason", description="Justificativa do cancelamento"),
        ),
        read_only=False,
    ),
    IntentRule(
        intent=IntentTag.LIST_INVOICES,
        keywords=("listar", "mostrar", "ver", "exibir", "minhas", "todas"),
        phrases=(
            "listar notas",
            "minhas notas",
            "ver notas",
            "mostrar notas",
            "todas as notas",
            "histórico de notas",
        ),
        context=("nota", "notas", "fiscal"),
        weight=0.9,
        description="ver suas notas fiscais",
        operation="list_invoices",
        operation_description="Listar notas fiscais com filtros opcionais.",
        params=(
            ParamSpec(
                "status",
                description="Status das notas",
                enum=("autorizada", "rejeitada", "processando", "cancelada"),
            ),
            ParamSpec("period", description="Período", enum=_PERIOD_ENUM),
            ParamSpec("client_name", description="Filtrar por cliente"),
            ParamSpec("limit", "integer", "Quantidade máxima de notas"),
        ),
    ),
    IntentRule(
        intent=IntentTag.LAST_INVOICE,
        keywords=("última", "ultima", "recente", "anterior"),
        phrases=("última nota", "ultima nota", "nota mais recente", "minha última"),
        context=("nota", "fiscal"),
        weight=1.0,
        description="ver sua última nota",
        operation="get_last_invoice",
        operation_description="Mostrar a última nota fiscal emitida.",
    ),
    IntentRule(
        intent=IntentTag.INVOICE_STATUS,
        keywords=("status", "situação", "estado", "como está", "andamento"),
        phrases=(
            "status da nota",
            "situação da nota",
            "como está a nota",
            "andamento da nota",
        ),
        context=("nota", "fiscal"),
        weight=0.9,
        description="consultar o status de uma nota",
        operation="check_invoice_status",
        operation_description="Consultar o status de uma nota específica.",
        params=(ParamSpec("invoice_id", description="Número ou ID da nota", required=True),),
    ),
    IntentRule(
        intent=IntentTag.REJECTED_INVOICES,
        keywords=("rejeitada", "rejeitadas", "recusada", "recusadas", "erro", "falha", "negada"),
        phrases=(
            "notas rejeitadas",
            "notas com erro",
            "notas recusadas",
            "notas que falharam",
        ),
        context=("nota", "notas"),
        weight=1.0,
        description="ver notas rejeitadas",
        operation="get_rejected_invoices",
        operation_description="Listar notas rejeitadas pela prefeitura.",
        params=(ParamSpec("period", description="Período", enum=_PERIOD_ENUM),),
    ),
    IntentRule(
        intent=IntentTag.PENDING_INVOICES,
        keywords=("pendente", "pendentes", "processando", "aguardando", "em análise"),
        phrases=(
            "notas pendentes",
            "notas processando",
            "notas em análise",
            "aguardando processamento",
        ),
        context=("nota", "notas"),
        weight=0.9,
        description="ver notas pendentes",
        operation="get_pending_invoices",
        operation_description="Listar notas ainda em processamento.",
        params=(ParamSpec("period", description="Período", enum=_PERIOD_ENUM),),
    ),
    IntentRule(
        intent=IntentTag.CREATE_CLIENT,
        keywords=("cadastrar", "criar", "adicionar", "novo", "registrar"),
        phrases=(
            "criar cliente",
            "cadastrar cliente",
            "novo cliente",
            "adicionar cliente",
            "registrar cliente",
            "cadastrar um cliente",
        ),
        context=("cliente", "cpf", "cnpj"),
        weight=1.0,
        description="cadastrar um cliente",
        operation="create_client",
        operation_description="Cadastrar um novo cliente.",
        params=(
            ParamSpec("name", description="Nome ou razão social", required=True),
            ParamSpec("document", description="CPF ou CNPJ", required=True),
            ParamSpec("email", description="E-mail"),
            ParamSpec("phone", description="Telefone"),
        ),
        read_only=False,
    ),
    IntentRule(
        intent=IntentTag.LIST_CLIENTS,
        keywords=("listar", "mostrar", "ver", "meus", "todos"),
        phrases=(
            "listar clientes",
            "meus clientes",
            "ver clientes",
            "clientes cadastrados",
            "todos os clientes",
        ),
        context=("cliente", "clientes"),
        weight=0.9,
        description="listar seus clientes",
        operation="list_clients",
        operation_description="Listar clientes cadastrados.",
        params=(ParamSpec("search", description="Filtro por nome ou documento"),),
    ),
    IntentRule(
        intent=IntentTag.SEARCH_CLIENT,
        keywords=("buscar", "procurar", "encontrar", "pesquisar", "qual"),
        phrases=(
            "buscar cliente",
            "procurar cliente",
            "encontrar cliente",
            "qual o cpf",
            "qual o cnpj",
        ),
        context=("cliente",),
        weight=0.8,
        description="buscar um cliente",
        operation="search_client",
        operation_description="Buscar um cliente por nome ou documento.",
        params=(ParamSpec("query", description="Nome ou documento", required=True),),
    ),
    IntentRule(
        intent=IntentTag.REVENUE_QUERY,
        keywords=("faturamento", "receita", "ganho", "ganhou", "vendas", "quanto", "faturei"),
        phrases=(
            "meu faturamento",
            "quanto faturei",
            "receita do mês",
            "total de vendas",
            "quanto ganhei",
            "faturamento mensal",
        ),
        weight=1.0,
        description="consultar seu faturamento",
        operation="get_revenue",
        operation_description="Consultar o faturamento de um período.",
        params=(ParamSpec("period", description="Período", enum=_PERIOD_ENUM),),
    ),
    IntentRule(
        intent=IntentTag.VIEW_TAXES,
        keywords=("imposto", "impostos", "tributo", "tributos", "das", "guia", "guias"),
        phrases=(
            "ver impostos",
            "meus impostos",
            "guias pendentes",
            "das pendente",
            "impostos do mês",
            "tributos a pagar",
        ),
        # "das" is also the everyday contraction "de + as".
        negative_context=("cpf", "cnpj"),
        document_guard=True,
        weight=0.9,
        description="ver seus impostos",
        operation="get_taxes",
        operation_description="Consultar impostos e guias DAS.",
        params=(
            ParamSpec("status", description="Situação", enum=("pendente", "pago", "todos")),
            ParamSpec("period", description="Período", enum=_PERIOD_ENUM),
        ),
    ),
    IntentRule(
        intent=IntentTag.PAY_TAX,
        keywords=("pagar", "pagamento", "quitar"),
        phrases=("pagar das", "pagar imposto", "pagar guia", "quitar das"),
        context=("das", "imposto", "guia"),
        weight=1.0,
        description="pagar uma guia DAS",
        operation="pay_das",
        operation_description="Orientar o pagamento de uma guia DAS.",
    ),
    IntentRule(
        intent=IntentTag.GENERATE_TAX,
        keywords=("gerar", "emitir", "criar"),
        phrases=("gerar das", "emitir das", "gerar guia", "criar guia das"),
        context=("das", "guia"),
        weight=0.9,
        description="gerar uma guia DAS",
        operation="generate_das",
        operation_description="Orientar a geração de uma guia DAS.",
    ),
    IntentRule(
        intent=IntentTag.CHECK_CONNECTION,
        keywords=("conexão", "conectado", "online", "status", "funcionando"),
        phrases=(
            "verificar conexão",
            "status da conexão",
            "está conectado",
            "prefeitura online",
        ),
        context=("prefeitura", "fiscal", "nuvem"),
        weight=0.8,
        description="verificar a conexão com a prefeitura",
        operation="check_fiscal_connection",
        operation_description="Verificar a conexão com a prefeitura.",
    ),
    IntentRule(
        intent=IntentTag.HELP,
        keywords=("ajuda", "help", "socorro", "como", "o que", "dúvida"),
        phrases=(
            "preciso de ajuda",
            "como funciona",
            "o que você faz",
            "me ajuda",
            "pode me ajudar",
        ),
        weight=0.7,
        operation="provide_help",
        operation_description="Explicar o que o assistente sabe fazer.",
        params=(ParamSpec("topic", description="Assunto da dúvida"),),
    ),
    IntentRule(
        intent=IntentTag.GREETING,
        keywords=("oi", "olá", "ola", "hey", "hello", "bom dia", "boa tarde", "boa noite", "e aí", "eai"),
        phrases=("oi", "olá", "bom dia", "boa tarde", "boa noite", "tudo bem", "como vai"),
        weight=0.6,
        exact_match=True,
    ),
)

RULES_BY_INTENT: dict[IntentTag, IntentRule] = {r.intent: r for r in INTENT_CATALOG}
RULES_BY_OPERATION: dict[str, IntentRule] = {
    r.operation: r for r in INTENT_CATALOG if r.operation
}


def rule_for(intent: IntentTag) -> IntentRule | None:
    return RULES_BY_INTENT.get(intent)


def describe(intent: IntentTag) -> str | None:
    rule = RULES_BY_INTENT.get(intent)
    return rule.description if rule else None
