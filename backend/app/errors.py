"""Ошибки сервиса проверки сочинений. Роутеры переводят их в HTTP статусы."""


class EssayServiceError(Exception):
    """Base class. `message` is safe to show to the client."""

    message = "Erro ao processar a redação."

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


class ValidationError(EssayServiceError):
    """Caller input is malformed (400)."""

    message = "Dados da redação inválidos."


class NotFoundError(EssayServiceError):
    """Essay absent or owned by another user (404). Message never says which."""

    message = "Redação não encontrada."


class UpstreamError(EssayServiceError):
    """The grading call failed, timed out or was blocked by the provider's safety filter."""

    message = "Não foi possível corrigir a redação. Tente novamente mais tarde."
    blocked_message = "O conteúdo da redação foi bloqueado pelo filtro de segurança do corretor."

    def __init__(self, message: str | None = None, blocked: bool = False):
        self.blocked = blocked
        if blocked and not message:
            message = self.blocked_message
        super().__init__(message)


class GradeFormatError(EssayServiceError):
    """The grader's answer could not be turned into a valid grade. `raw` stays server-side."""

    message = "A resposta do corretor não está no formato esperado."

    def __init__(self, detail: str, raw: str | None = None):
        self.detail = detail
        self.raw = raw
        super().__init__()
