from __future__ import annotations


class SettlementError(Exception):
    """Base for every checkout failure shown to the buyer as a single message."""

    def __init__(self, message: str, *, branch_id: str | None = None, branch_name: str | None = None):
        super().__init__(message)
        self.message = message
        self.branch_id = branch_id
        self.branch_name = branch_name
        # branch_id -> order id of sibling orders that were committed before this error surfaced
        self.committed: dict[str, str] = {}


class ValidationError(SettlementError):
    def __init__(self, missing_fields: list[str]):
        super().__init__("Please fill all shipping information including your phone number.")
        self.missing_fields = missing_fields


class SuspendedBranchError(SettlementError):
    def __init__(self, branch_id: str, branch_name: str):
        super().__init__(
            f'The shop "{branch_name}" is currently suspended and cannot accept orders.',
            branch_id=branch_id,
            branch_name=branch_name,
        )


class PaymentRequiredError(SettlementError):
    def __init__(self, branch_id: str, branch_name: str):
        super().__init__(
            f"Please select a payment method for branch: {branch_name}",
            branch_id=branch_id,
            branch_name=branch_name,
        )


class PaymentConfigMismatchError(SettlementError):
    def __init__(self, branch_id: str, branch_name: str, provider_id: str):
        super().__init__(
            f"The selected payment method is no longer available for {branch_name}. Please choose another one.",
            branch_id=branch_id,
            branch_name=branch_name,
        )
        self.provider_id = provider_id


class TransactionIdRequiredError(SettlementError):
    def __init__(self, branch_id: str, branch_name: str, provider_name: str):
        super().__init__(
            f"Please provide Transaction ID for {provider_name} payment to {branch_name}",
            branch_id=branch_id,
            branch_name=branch_name,
        )
        self.provider_name = provider_name


class SettlementWriteError(SettlementError):
    def __init__(self, branch_id: str, branch_name: str, cause: Exception):
        super().__init__(
            f'Failed to place order with "{branch_name}": {cause}',
            branch_id=branch_id,
            branch_name=branch_name,
        )
        self.cause = cause


class OrderRejectedError(Exception):
    """Raised by the order store when a submission fails its own write-time checks."""
