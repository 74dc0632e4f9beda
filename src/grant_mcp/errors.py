"""Exception types for the permission grant flow."""


class GrantFlowError(Exception):
    """Base class for grant flow errors."""

    pass


class InvalidRequestError(GrantFlowError, ValueError):
    """Raised when a permission request is malformed or unsupported."""

    pass


class ChainNotSupportedError(InvalidRequestError):
    """Raised when no chain metadata exists for a chain id."""

    def __init__(self, chain_id: int):
        super().__init__(f"Chain {chain_id} is not supported")
        self.chain_id = chain_id


class AdjustmentNotAllowedError(GrantFlowError):
    """Raised when an edit is attempted on a request that disallows adjustment."""

    MESSAGE = "Adjustment is not allowed"

    def __init__(self, message: str = MESSAGE):
        super().__init__(message)


class SessionNotCreatedError(GrantFlowError, RuntimeError):
    """Raised when a confirmation session is used before it is created."""

    MESSAGE = "Interface not yet created. Call create_interface() first."

    def __init__(self, message: str = MESSAGE):
        super().__init__(message)


class IngressAlreadyCreatedError(GrantFlowError, RuntimeError):
    """Raised when the dispatcher ingress is requested a second time."""

    MESSAGE = "User input event handler has already been created"

    def __init__(self, message: str = MESSAGE):
        super().__init__(message)


class ConfirmationClosedError(GrantFlowError):
    """Raised when a confirmation is closed programmatically before a decision."""

    pass


class SigningError(GrantFlowError):
    """Raised when a delegation cannot be signed."""

    pass
