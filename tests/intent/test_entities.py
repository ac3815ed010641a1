from datetime import date

import pytest
from fiscal_assistant.intent.entities import (
    extract_amount,
    extract_counterparty_name,
    extract_document,
    extract_entities,
    extract_period,
    extract_service_description,
)
from fiscal_assistant.intent.types import Period


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Emitir nota de R$ 1.500,00 para João", 1500.0),
        ("nota de R$1500 pro cliente", 1500.0),
        ("1500 reais para Maria", 1500.0),
        ("mil e quinhentos reais", 1500.0),
        ("nota de 2 mil para Empresa ABC", 2000.0),
        ("emitir 1.5k", 1500.0),
        ("uma nota de 2k", 2000.0),
        ("valor de 350,50", 350.5),
        ("emitir nota de 500 para João", 500.0),
        ("trezentos reais", 300.0),
    ],
)
def test_extract_amount_forms(text: str, expected: float) -> None:
    assert extract_amount(text) == pytest.approx(expected)


def test_extract_amount_ignores_documents() -> None:
    """A CPF or CNPJ must never be read as the invoice amount."""
    assert extract_amount("cliente 12345678901") is None
    assert extract_amount("cnpj 11222333000181") is None
    assert extract_amount("cadastrar João cpf 123.456.789-01") is None
    assert extract_amount("nota de 500 para cpf 12345678901") == 500.0


def test_extract_amount_bare_number_range() -> None:
    assert extract_amount("nota 999999999") is None
    assert extract_amount(None) is None
    assert extract_amount("sem valor") is None


def test_extract_document_cpf_and_cnpj() -> None:
    cpf = extract_document("Maria CPF 123.456.789-01")
    assert cpf is not None
    assert cpf.kind == "cpf"
    assert cpf.value == "12345678901"
    assert cpf.formatted() == "123.456.789-01"

    cnpj = extract_document("empresa cnpj 11.222.333/0001-81")
    assert cnpj is not None
    assert cnpj.kind == "cnpj"
    assert cnpj.value == "11222333000181"
    assert cnpj.formatted() == "11.222.333/0001-81"


def test_extract_document_bare_and_labeled() -> None:
    assert extract_document("12345678901").kind == "cpf"
    assert extract_document("documento: 11 222 333 0001 81").value == "11222333000181"
    assert extract_document("nota 1234") is None


def test_extract_counterparty_name() -> None:
    assert extract_counterparty_name("Emitir nota de R$ 1.500 para João Silva") == "João Silva"
    assert extract_counterparty_name("cadastrar cliente Maria Souza cpf 123.456.789-01") == "Maria Souza"
    assert extract_counterparty_name("nota para Ana referente a consultoria") == "Ana"
    assert extract_counterparty_name("o nome é Carlos Pereira") == "Carlos Pereira"


def test_extract_counterparty_name_keeps_number_words_outside_amounts() -> None:
    assert (
        extract_counterparty_name("cadastrar cliente Sete Lagoas Consultoria cnpj 11.222.333/0001-81")
        == "Sete Lagoas Consultoria"
    )
    assert extract_counterparty_name("cadastrar cliente Uma Empresa") == "Uma Empresa"
    assert extract_counterparty_name("nota de 300 pra Dois Irmãos Ltda") == "Dois Irmãos Ltda"
    # spelled-out amounts are still removed
    assert extract_counterparty_name("nota de mil e quinhentos reais para João Silva") == "João Silva"
    assert extract_counterparty_name("nota de cem reais para Sete Lagoas") == "Sete Lagoas"


def test_extract_counterparty_name_rejects_stopwords() -> None:
    assert extract_counterparty_name("quantas notas do mês passado") is None
    assert extract_counterparty_name("emitir nota") is None
    assert extract_counterparty_name("") is None


def test_extract_period() -> None:
    assert extract_period("quanto faturei no mês passado") == Period("last_month")
    assert extract_period("notas de hoje") == Period("today")
    assert extract_period("faturamento de março") == Period("month", 3)
    assert extract_period("notas do dia 5") == Period("day", 5)
    assert extract_period("faturamento do ano") == Period("this_year")
    assert extract_period("emitir nota") is None


def test_period_date_ranges() -> None:
    today = date(2026, 10, 15)
    assert Period("last_month").date_range(today) == (date(2026, 9, 1), date(2026, 10, 1))
    assert Period("this_month").date_range(today) == (date(2026, 10, 1), date(2026, 10, 16))
    # a month later than the current one refers to last year
    assert Period("month", 11).date_range(today) == (date(2025, 11, 1), date(2025, 12, 1))
    assert Period("this_week").date_range(today)[0] == date(2026, 10, 12)


def test_extract_service_description() -> None:
    assert extract_service_description("nota de 500 para João referente a consultoria") == "consultoria"
    assert extract_service_description("emitir nota de 500") is None


def test_extract_entities_combines_extractors() -> None:
    ent = extract_entities("Emitir nota de R$ 2.000 para Empresa ABC referente a manutenção")
    assert ent.amount == 2000.0
    assert ent.counterparty_name == "Empresa ABC"
    assert ent.document is None
    assert ent.service_description == "manutenção"
