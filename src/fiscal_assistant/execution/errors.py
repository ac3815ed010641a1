"""Translation of execution-sink failures into user-facing Portuguese.

Lookup order: error code, exact message, HTTP status (401 depends on
whether the failure came from a fiscal operation), substring patterns,
generic fallback. The original technical text is kept on the result for
diagnostics and never rendered.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class KnowledgeEntry:
    category: str
    message: str
    explanation: str
    action: str


@dataclass
class TranslatedError:
    category: str
    message: str
    explanation: str
    action: str
    original: str = ""

    def render(self) -> str:
        return f"{self.message}\n\n{self.explanation}\n\n{self.action}"

    def as_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "message": self.message,
            "explanation": self.explanation,
            "action": self.action,
        }


K = KnowledgeEntry

ERROR_KNOWLEDGE_BASE: dict[str, KnowledgeEntry] = {
    # session (non-fiscal 401)
    "INVALID_CREDENTIALS": K(
        "user_auth",
        "Sessão inválida",
        "Não foi possível confirmar sua identidade.",
        "Faça login novamente para continuar.",
    ),
    "TOKEN_EXPIRED": K(
        "user_auth",
        "Sessão expirada",
        "Sua sessão expirou por inatividade.",
        "Faça login novamente para continuar usando o sistema.",
    ),
    # fiscal authority authentication / authorization
    "MUNICIPALITY_AUTH_401": K(
        "fiscal_auth",
        "Erro de autenticação com a prefeitura",
        "As credenciais de acesso não foram aceitas pelo sistema da prefeitura.",
        "Verifique suas credenciais (certificado digital ou usuário/senha municipal) e tente novamente.",
    ),
    "MUNICIPALITY_PERMISSION_DENIED": K(
        "authorization",
        "Empresa não autorizada para emitir NFS-e",
        "A empresa não está autorizada pela prefeitura para emitir notas fiscais de serviço.",
        "Entre em contato com a prefeitura para verificar se a empresa está habilitada para emitir NFS-e.",
    ),
    "403": K(
        "authorization",
        "Sem permissão para realizar esta operação",
        "Sua conta não tem permissão para emitir notas fiscais neste município.",
        "Entre em contato com a prefeitura para verificar suas permissões de emissão de NFS-e.",
    ),
    "404": K(
        "not_found",
        "Recurso não encontrado",
        "A empresa ou nota fiscal não foi encontrada no sistema.",
        "Verifique se a empresa está corretamente registrada.",
    ),
    "405": K(
        "api_error",
        "Serviço temporariamente indisponível",
        "O sistema de emissão de notas fiscais está em manutenção.",
        "Tente novamente em alguns instantes ou entre em contato com o suporte.",
    ),
    "400": K(
        "validation",
        "Dados inválidos para emissão",
        "Alguns dados informados não estão no formato esperado pela prefeitura.",
        "Verifique os dados da nota fiscal (CNPJ, valores, código de serviço) e tente novamente.",
    ),
    # validation
    "invalid_municipal_registration": K(
        "validation",
        "Inscrição municipal inválida",
        "O número da inscrição municipal não é válido ou não está cadastrado na prefeitura.",
        "Verifique o número da inscrição municipal da empresa.",
    ),
    "service_code_not_allowed": K(
        "validation",
        "Código de serviço não permitido",
        "O código de serviço informado não é permitido para este município ou regime tributário.",
        "Escolha um código de serviço válido para seu município.",
    ),
    "municipality_not_supported": K(
        "validation",
        "Município não suportado",
        "Este município ainda não está disponível para emissão de NFS-e.",
        "Verifique se o município está correto ou entre em contato com o suporte.",
    ),
    "invalidjson": K(
        "validation",
        "Formato de dados inválido",
        "Os dados enviados para a prefeitura não estão no formato correto.",
        "Entre em contato com o suporte técnico para verificar a configuração.",
    ),
    "validationfailed": K(
        "validation",
        "Validação de dados falhou",
        "Alguns dados não passaram na validação da prefeitura.",
        "Verifique se todos os campos obrigatórios estão preenchidos corretamente.",
    ),
    "cpf_cnpj_diferente": K(
        "certificate",
        "Certificado pertence a outra empresa",
        "O certificado digital foi emitido para um CNPJ diferente da empresa cadastrada.",
        "Envie um certificado digital que corresponda ao CNPJ da empresa.",
    ),
    "empresa_nao_encontrada": K(
        "configuration",
        "Empresa não registrada",
        "A empresa não foi encontrada no sistema emissor.",
        'Use "Verificar conexão com prefeitura" para registrar a empresa primeiro.',
    ),
    # plan
    "INVOICE_LIMIT_REACHED": K(
        "plan_limit",
        "Limite de notas fiscais atingido",
        "Você atingiu o limite mensal de notas fiscais do seu plano atual.",
        "Faça upgrade do seu plano ou use a opção Pay per Use para continuar emitindo.",
    ),
    # system
    "municipality_offline": K(
        "system",
        "Sistema da prefeitura temporariamente indisponível",
        "O sistema da prefeitura está fora do ar ou em manutenção.",
        "Vamos tentar novamente automaticamente e avisar você assim que for possível.",
    ),
    "timeout": K(
        "system",
        "Tempo de resposta excedido",
        "A prefeitura demorou muito para responder.",
        "Tente novamente em alguns instantes.",
    ),
    "network_error": K(
        "system",
        "Erro de conexão",
        "Não foi possível conectar com o sistema emissor.",
        "Tente novamente em alguns instantes.",
    ),
    "service_not_configured": K(
        "configuration",
        "Integração fiscal não configurada",
        "O sistema de emissão de notas fiscais não está configurado no servidor.",
        "Entre em contato com o administrador do sistema.",
    ),
    # certificate / credentials
    "certificate_expired": K(
        "certificate",
        "Certificado digital expirado",
        "Seu certificado digital A1 expirou e não pode mais ser usado.",
        "Renove seu certificado digital e faça o upload novamente.",
    ),
    "certificate_invalid": K(
        "certificate",
        "Certificado digital inválido",
        "O certificado digital fornecido não é válido ou está corrompido.",
        "Verifique o arquivo do certificado e faça o upload novamente.",
    ),
    "municipal_credentials_invalid": K(
        "credentials",
        "Credenciais municipais inválidas",
        "O usuário ou senha informados não são válidos no sistema da prefeitura.",
        "Verifique suas credenciais municipais e tente novamente.",
    ),
    "fiscal_not_connected": K(
        "credentials",
        "Conexão fiscal não estabelecida",
        "A empresa não está conectada ao sistema de emissão de notas fiscais.",
        'Configure o certificado digital e clique em "Verificar conexão com prefeitura".',
    ),
    "company_not_registered": K(
        "configuration",
        "Empresa não registrada para emissão",
        "A empresa precisa ser registrada no sistema emissor antes de emitir notas.",
        'Clique em "Verificar conexão com prefeitura" para registrar.',
    ),
}

GENERIC_ERROR = K(
    "unknown",
    "Erro ao processar solicitação",
    "Ocorreu um erro inesperado ao processar sua solicitação.",
    "Tente novamente em alguns instantes. Se o problema persistir, entre em contato com o suporte.",
)

# (all substrings must appear, entry key); first hit wins
MESSAGE_PATTERNS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("inscrição municipal",), "invalid_municipal_registration"),
    (("inscricao municipal",), "invalid_municipal_registration"),
    (("municipal_registration",), "invalid_municipal_registration"),
    (("código de serviço",), "service_code_not_allowed"),
    (("codigo servico",), "service_code_not_allowed"),
    (("município", "não suportado"), "municipality_not_supported"),
    (("município", "nao suportado"), "municipality_not_supported"),
    (("timeout",), "timeout"),
    (("tempo excedido",), "timeout"),
    (("certificado", "expirado"), "certificate_expired"),
    (("cnpj diferente",), "cpf_cnpj_diferente"),
    (("certificado", "inválido"), "certificate_invalid"),
    (("certificado", "invalido"), "certificate_invalid"),
    (("credencial", "inválida"), "municipal_credentials_invalid"),
    (("credencial", "invalida"), "municipal_credentials_invalid"),
    (("credenciais fiscais não configuradas",), "fiscal_not_connected"),
    (("fiscal_not_connected",), "fiscal_not_connected"),
    (("empresa não registrada",), "company_not_registered"),
    (("company_not_registered",), "company_not_registered"),
    (("offline",), "municipality_offline"),
    (("indisponível",), "municipality_offline"),
    (("indisponivel",), "municipality_offline"),
    (("network",), "network_error"),
    (("conexão",), "network_error"),
    (("conexao",), "network_error"),
    (("invalid json",), "invalidjson"),
    (("invalidjson",), "invalidjson"),
    (("validation failed",), "validationfailed"),
    (("validationfailed",), "validationfailed"),
    (("service_not_configured",), "service_not_configured"),
)

_FISCAL_HINTS = ("prefeitura", "nfse", "nfs-e", "nota fiscal", "municipio", "município")
_CODE_KEY_RE = re.compile(r"[^a-z0-9_]")


def _lookup_code(code: str) -> KnowledgeEntry | None:
    return ERROR_KNOWLEDGE_BASE.get(code.upper()) or ERROR_KNOWLEDGE_BASE.get(
        _CODE_KEY_RE.sub("_", code.lower())
    )


def translate_error(
    error: BaseException | str,
    municipality: str | None = None,
    fiscal_operation: bool = True,
) -> TranslatedError:
    """Map a sink failure to a user-facing explanation."""
    message = str(error) if not isinstance(error, str) else error
    code = getattr(error, "code", None) or ""
    status = getattr(error, "status_code", None)
    lowered = message.lower()

    entry = _lookup_code(code) if code else None
    if entry is None and message:
        entry = ERROR_KNOWLEDGE_BASE.get(lowered)
    if entry is None and status:
        if status == 401:
            fiscal = fiscal_operation or bool(municipality) or any(h in lowered for h in _FISCAL_HINTS)
            entry = ERROR_KNOWLEDGE_BASE["MUNICIPALITY_AUTH_401" if fiscal else "INVALID_CREDENTIALS"]
        else:
            entry = ERROR_KNOWLEDGE_BASE.get(str(status))
    if entry is None:
        for needles, key in MESSAGE_PATTERNS:
            if all(n in lowered for n in needles):
                entry = ERROR_KNOWLEDGE_BASE[key]
                break
    entry = entry or GENERIC_ERROR

    explanation = entry.explanation
    if municipality:
        explanation = explanation.replace("prefeitura", f"prefeitura de {municipality}", 1)
    return TranslatedError(
        category=entry.category,
        message=entry.message,
        explanation=explanation,
        action=entry.action,
        original=message,
    )
