from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from configurator.services.validation import UnsatisfiedGroup


class ConfigurationError(RuntimeError):
    """Base de todos os erros do configurador."""


class CatalogFetchError(ConfigurationError):
    def __init__(self, status_code: int, body_text: str):
        super().__init__(f"Erro catálogo {status_code}: {body_text}")
        self.status_code = status_code
        self.body_text = body_text


class HydrationFailure(ConfigurationError):
    def __init__(self, kind: str, entity_id: int, reason: str):
        super().__init__(f"Falha ao carregar {kind} {entity_id}: {reason}")
        self.kind = kind
        self.entity_id = entity_id
        self.reason = reason


class ConfirmWhileInvalid(ConfigurationError):
    def __init__(self, unsatisfied: Sequence["UnsatisfiedGroup"]):
        names = ", ".join(sorted({entry.group_name for entry in unsatisfied})) or "-"
        super().__init__(f"Configuração incompleta: {names}")
        self.unsatisfied = list(unsatisfied)


class SessionClosed(ConfigurationError):
    def __init__(self, session_id: str, state: str):
        super().__init__(f"Sessão {session_id} já encerrada ({state})")
        self.session_id = session_id
        self.state = state


class OrderLineSubmitError(ConfigurationError):
    def __init__(self, status_code: int, body_text: str):
        super().__init__(f"Erro ao enviar item do pedido {status_code}: {body_text}")
        self.status_code = status_code
        self.body_text = body_text


class InvalidSelection(ConfigurationError):
    def __init__(self, option_id: int, reason: str):
        super().__init__(f"Seleção inválida para a opção {option_id}: {reason}")
        self.option_id = option_id
        self.reason = reason
