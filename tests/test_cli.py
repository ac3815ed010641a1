from pathlib import Path

import orjson
from fiscal_assistant.cli import app, load_workspace
from typer.testing import CliRunner

runner = CliRunner()


def test_ask_prints_interpretation() -> None:
    result = runner.invoke(app, ["ask", "Emitir nota de R$ 1.500 para João Silva"])
    assert result.exit_code == 0
    assert "emit_invoice" in result.output
    assert "1500.0" in result.output


def test_chat_rejects_missing_fixture(tmp_path: Path) -> None:
    result = runner.invoke(app, ["chat", "--fixture", str(tmp_path / "missing.json")])
    assert result.exit_code == 1


def test_load_workspace_from_fixture(tmp_path: Path) -> None:
    fixture = tmp_path / "ws.json"
    fixture.write_bytes(
        orjson.dumps(
            {
                "tenant_id": "t9",
                "plan": "pro",
                "registration": {"external_id": "nf-9", "municipality_code": "3550308"},
                "counterparties": [{"name": "João Silva", "document": "123.456.789-01"}],
                "invoices": [
                    {
                        "number": "7",
                        "counterparty_name": "João Silva",
                        "amount": 250,
                        "issued_at": "2026-10-01T12:00:00+00:00",
                    }
                ],
            }
        )
    )
    ws = load_workspace(fixture)
    assert ws.tenant_id == "t9"
    assert ws.directory.find_by_document("t9", "12345678901").document_kind == "cpf"
    assert ws.history.by_number("t9", "7").amount == 250.0
    assert ws.registry.registration("t9").external_id == "nf-9"
    assert ws.quota.status("t9").invoices_allowed is None
