from decimal import Decimal
from typing import Callable

from .errors import SettlementCategoryUnavailable, ValidationError
from .models import Category, ExpenseDraft

SETTLEMENT_CATEGORY = "Settlement"


def settlement_description(payer_name: str, recipient_name: str) -> str:
    return f"Settlement: {payer_name} to {recipient_name}"


def compose_settlement(
    payer_id: str,
    recipient_id: str,
    amount: Decimal,
    payer_name: str,
    recipient_name: str,
    ensure_category: Callable[[str], Category],
) -> ExpenseDraft:
    """Build the expense draft that records a transfer from payer to recipient.

    The recipient is the only participant, so running the draft through the
    balance engine raises the payer by ``amount`` and lowers the recipient by
    the same amount. Nothing is persisted here.
    """
    if payer_id == recipient_id:
        raise ValidationError("A user cannot settle with themselves")
    if amount is None or amount <= 0:
        raise ValidationError("Settlement amount must be positive")

    try:
        category = ensure_category(SETTLEMENT_CATEGORY)
    except Exception as e:
        raise SettlementCategoryUnavailable(
            f"Could not ensure the '{SETTLEMENT_CATEGORY}' category exists"
        ) from e

    if category is None or category.name.lower() != SETTLEMENT_CATEGORY.lower():
        raise SettlementCategoryUnavailable(
            f"Category collaborator did not return '{SETTLEMENT_CATEGORY}'"
        )

    return ExpenseDraft(
        description=settlement_description(payer_name, recipient_name),
        amount=amount,
        paid_by_id=payer_id,
        participant_ids=[recipient_id],
        category=category.name,
    )
