import pytest
from fiscal_assistant.errors import ExecutionFailure
from fiscal_assistant.execution.errors import GENERIC_ERROR, translate_error


@pytest.mark.parametrize(
    ("error", "category"),
    [
        (ExecutionFailure("limit", code="INVOICE_LIMIT_REACHED"), "plan_limit"),
        (ExecutionFailure("x", code="certificate-expired"), "certificate"),
        ("empresa_nao_encontrada", "configuration"),
        (ExecutionFailure("Forbidden", status_code=403), "authorization"),
        (ExecutionFailure("Bad request", status_code=400), "validation"),
        ("Inscrição municipal inválida para o prestador", "validation"),
        ("Request timeout after 30s", "system"),
        ("Certificado digital expirado em 01/01/2026", "certificate"),
        ("Sistema indisponível no momento", "system"),
    ],
)
def test_translate_error_categories(error, category: str) -> None:
    assert translate_error(error).category == category


def test_401_depends_on_context() -> None:
    failure = ExecutionFailure("Unauthorized", status_code=401)
    assert translate_error(failure).message == "Erro de autenticação com a prefeitura"
    session = translate_error(failure, fiscal_operation=False)
    assert session.category == "user_auth"


def test_municipality_is_named_in_explanation() -> None:
    translated = translate_error(ExecutionFailure("x", code="municipality_offline"), municipality="Curitiba")
    assert "prefeitura de Curitiba" in translated.explanation


def test_unknown_error_is_generic_and_keeps_original() -> None:
    translated = translate_error(RuntimeError("NullPointer at line 42"))
    assert translated.message == GENERIC_ERROR.message
    assert translated.original == "NullPointer at line 42"
    assert "NullPointer" not in translated.render()
    assert set(translated.as_dict()) == {"category", "message", "explanation", "action"}
