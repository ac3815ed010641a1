"""Fixed texts and list formatting used by the deterministic responder."""

from __future__ import annotations

from typing import Sequence

from fiscal_assistant.collaborators.records import Counterparty, InvoiceRecord
from fiscal_assistant.intent.types import DocumentRef
from fiscal_assistant.utils.formatting import format_brl, format_date

MENU_TEXT = (
    "Olá! Sou seu assistente fiscal. Posso ajudá-lo com:\n\n"
    "• Emitir notas fiscais (ex: \"Emitir nota de R$ 1.500 para João Silva\")\n"
    "• Consultar notas (ex: \"Qual foi minha última nota?\")\n"
    "• Ver faturamento (ex: \"Quanto faturei este mês?\")\n"
    "• Gerenciar clientes (ex: \"Cadastrar cliente Maria CPF 123.456.789-00\")\n"
    "• Ver impostos e guias DAS\n\n"
    "Como posso ajudar?"
)

GREETING_TEXT = MENU_TEXT

HELP_TEXT = (
    "Posso fazer por você:\n\n"
    "• Emitir nota: \"Emitir nota de R$ 2.000 para Empresa ABC\"\n"
    "• Cancelar nota: \"Cancelar nota 123 porque o serviço não foi prestado\"\n"
    "• Consultar: \"última nota\", \"notas rejeitadas\", \"notas pendentes\"\n"
    "• Faturamento: \"Quanto faturei no mês passado?\"\n"
    "• Clientes: \"Cadastrar cliente\", \"Listar clientes\"\n"
    "• Impostos: \"Ver impostos\", \"Gerar DAS\"\n\n"
    "É só escrever do seu jeito, eu entendo abreviações e erros de digitação."
)

NOT_UNDERSTOOD_TEXT = (
    "Desculpe, não entendi. Pode reformular? Posso emitir notas, consultar "
    "faturamento, ver impostos e gerenciar clientes."
)

TAXES_TEXT = (
    "Seus impostos (guias DAS) ficam na seção Impostos. Lá você vê as guias "
    "pendentes, os valores e os vencimentos."
)

PAY_TAX_TEXT = (
    "Para pagar sua guia DAS, acesse a seção Impostos e escolha a guia "
    "pendente. Você pode pagar por boleto ou PIX."
)

GENERATE_TAX_TEXT = (
    "A guia DAS do mês é gerada na seção Impostos. Se você é MEI, o valor é "
    "fixo; no Simples Nacional ele é calculado sobre o faturamento do mês."
)

PERIOD_LABELS: dict[str, str] = {
    "today": "hoje",
    "yesterday": "ontem",
    "this_week": "nesta semana",
    "this_month": "neste mês",
    "last_month": "no mês passado",
    "this_year": "neste ano",
}

MONTH_NAMES = (
    "janeiro",
    "fevereiro",
    "março",
    "abril",
    "maio",
    "junho",
    "julho",
    "agosto",
    "setembro",
    "outubro",
    "novembro",
    "dezembro",
)

STATUS_LABELS: dict[str, str] = {
    "autorizada": "autorizada",
    "rejeitada": "rejeitada",
    "processando": "em processamento",
    "cancelada": "cancelada",
    "rascunho": "rascunho",
}


def period_label(kind: str, value: int | None) -> str:
    if kind == "month" and value:
        return f"em {MONTH_NAMES[value - 1]}"
    if kind == "day" and value:
        return f"no dia {value}"
    return PERIOD_LABELS.get(kind, "")


def invoice_line(inv: InvoiceRecord) -> str:
    number = f"Nota {inv.number}" if inv.number else "Nota sem número"
    return (
        f"• {number} • {inv.counterparty_name} • {format_brl(inv.amount)} • "
        f"{format_date(inv.issued_at)} • {STATUS_LABELS.get(inv.status.value, inv.status.value)}"
    )


def invoice_list(title: str, invoices: Sequence[InvoiceRecord], empty: str) -> str:
    if not invoices:
        return empty
    return title + "\n\n" + "\n".join(invoice_line(inv) for inv in invoices)


def counterparty_line(cp: Counterparty) -> str:
    doc = DocumentRef.from_digits(cp.document)
    shown = doc.formatted() if doc else cp.document
    return f"• {cp.name} ({cp.document_kind.upper()} {shown})"


def counterparty_list(title: str, items: Sequence[Counterparty], empty: str) -> str:
    if not items:
        return empty
    return title + "\n\n" + "\n".join(counterparty_line(cp) for cp in items)
