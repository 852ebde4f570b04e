# payflow/errors.py


class PayflowError(Exception):
    """Base class for payflow errors."""


class InvalidTransition(PayflowError):
    def __init__(self, transaction_id: str, current: str, requested: str):
        self.transaction_id = transaction_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Transaction {transaction_id}: cannot move from {current} to {requested}"
        )


class GatewayError(PayflowError):
    """Raised by the connector when a gateway call cannot be completed."""
