from __future__ import annotations

from enum import Enum

from .errors import PaymentConfigMismatchError, PaymentRequiredError, TransactionIdRequiredError
from .models import BranchSettlementContext, PaymentConfig, PaymentSelection

COD_NAMES = {"cash on delivery", "cod"}


class SelectionState(str, Enum):
    NO_SELECTION = "no-selection"
    PROVIDER_SELECTED = "provider-selected"
    DETAILS_COMPLETE = "details-complete"


def is_cash_on_delivery(provider_name: str | None) -> bool:
    if not provider_name:
        return False
    return " ".join(provider_name.split()).lower() in COD_NAMES


def validate_payment(context: BranchSettlementContext, selection: PaymentSelection | None) -> PaymentConfig:
    """Re-check a buyer-supplied selection against the branch's current payment configs."""
    if selection is None or not selection.provider_id:
        raise PaymentRequiredError(context.branch_id, context.name)

    config = context.find_config(selection.provider_id)
    if config is None:
        raise PaymentConfigMismatchError(context.branch_id, context.name, selection.provider_id)

    if not is_cash_on_delivery(config.provider_name) and not (selection.transaction_id or "").strip():
        raise TransactionIdRequiredError(context.branch_id, context.name, config.provider_name)

    return config


class PaymentSelector:
    """Payment choice per branch: provider first, then a transaction id unless it is COD."""

    def __init__(self) -> None:
        self._selections: dict[str, PaymentSelection] = {}

    def select(self, context: BranchSettlementContext, provider_id: str) -> PaymentConfig:
        config = context.find_config(provider_id)
        if config is None:
            raise PaymentConfigMismatchError(context.branch_id, context.name, provider_id)
        selection = self._selections.setdefault(context.branch_id, PaymentSelection())
        selection.provider_id = provider_id
        return config

    def set_transaction_id(self, branch_id: str, transaction_id: str) -> None:
        selection = self._selections.setdefault(branch_id, PaymentSelection())
        selection.transaction_id = transaction_id

    def get(self, branch_id: str) -> PaymentSelection | None:
        return self._selections.get(branch_id)

    def state(self, context: BranchSettlementContext) -> SelectionState:
        selection = self._selections.get(context.branch_id)
        if selection is None or not selection.provider_id:
            return SelectionState.NO_SELECTION
        config = context.find_config(selection.provider_id)
        if config is None:
            return SelectionState.NO_SELECTION
        if is_cash_on_delivery(config.provider_name) or (selection.transaction_id or "").strip():
            return SelectionState.DETAILS_COMPLETE
        return SelectionState.PROVIDER_SELECTED

    def snapshot(self) -> dict[str, PaymentSelection]:
        return {
            branch_id: PaymentSelection(provider_id=s.provider_id, transaction_id=s.transaction_id)
            for branch_id, s in self._selections.items()
        }
