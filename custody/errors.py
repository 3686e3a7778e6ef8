"""
Failure kinds raised by the custody core.

Every error carries a ``kind`` so callers can branch on it, and a
``retryable`` flag that is only set for failures outside the vault itself.
"""


class CustodyError(Exception):
    """Base class for all custody failures"""

    kind = "custody_error"
    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)
        self.message = message or self.kind

    def to_dict(self) -> dict:
        """Serialize error for API responses"""
        return {
            'error': self.kind,
            'message': self.message,
            'retryable': self.retryable
        }


class Unauthorized(CustodyError):
    """Caller lacks the required role"""
    kind = "unauthorized"


class InvalidState(CustodyError):
    """Operation is not allowed in the current state"""
    kind = "invalid_state"


class NotFound(CustodyError):
    """Unknown proposal, asset or principal"""
    kind = "not_found"


class InvalidQuorum(CustodyError):
    """Registry change would break the quorum invariants"""
    kind = "invalid_quorum"


class AlreadyRegistered(InvalidState):
    kind = "already_registered"


class NotOwned(InvalidState):
    kind = "not_owned"


class InvalidAddress(CustodyError, ValueError):
    kind = "invalid_address"


class ExternalCallFailure(CustodyError):
    """An external call or asset transfer did not succeed"""
    kind = "external_call_failure"
    retryable = True

    def __init__(self, message: str = "", target: str = None):
        super().__init__(message)
        self.target = target

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['target'] = self.target
        return data
