"""Error taxonomy for the session orchestration layer.

Unavailable collaborators and empty vocabularies are not errors: the first is a
``False`` capability flag, the second an empty ``SessionQueue``.
"""


class SessionError(Exception):
    """Base class for errors raised by hanzi-session."""


class ServiceCallError(SessionError):
    """A call to an external collaborator failed."""

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.message = message


class ServiceTimeoutError(ServiceCallError):
    """A collaborator call exceeded its timeout and was cancelled."""


class UnknownCardError(SessionError):
    """A card id that is not part of the current session queue."""

    def __init__(self, card_id: str):
        super().__init__(f"Card {card_id!r} is not in the current session")
        self.card_id = card_id
