"""Fehlertypen eines Export-Versuchs. Alle sind terminal: kein Retry, keine Datei."""


class ExportError(Exception):
    """Basisklasse, die CLI fängt nur diese."""


class AuthenticationUnavailable(ExportError):
    """Kein Access-Token / keine Session zu bekommen."""


class ConversationNotFound(ExportError):
    """Keine Konversations-ID (oder keine Nachrichten) im aktuellen Kontext."""


class NetworkFailure(ExportError):
    """Nicht-erfolgreiche Antwort oder Transportfehler beim Fetch."""

    def __init__(self, message: str, status: int = 0, reason: str = ""):
        self.status = status
        self.reason = reason
        super().__init__(message)


class MissingConversationRoot(ExportError):
    """Graph ohne auflösbaren Startknoten (current_node)."""


class CyclicConversationGraph(ExportError):
    """Parent-Kette läuft im Kreis."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Cycle in conversation graph at node {node_id!r}")


class UnexpectedPayload(ExportError):
    """Antwort kam an, enthält aber nichts Verwertbares."""


class ExportInProgress(ExportError):
    """Für diese Session läuft bereits ein Export."""
