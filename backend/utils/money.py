from decimal import Decimal, InvalidOperation

from core.errors import ValidationError

CENT = Decimal("0.01")
# Money columns are Numeric(10, 2): at most 8 digits before the point
AMOUNT_LIMIT = Decimal("100000000")


def parse_amount(value, what: str = "Amount") -> Decimal:
    """Parse a positive money amount, rounded to cents, that fits the money columns."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{what} must be a number")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{what} must be greater than 0")
    if amount >= AMOUNT_LIMIT:
        raise ValidationError(f"{what} must be less than {AMOUNT_LIMIT}")
    try:
        amount = amount.quantize(CENT)
    except InvalidOperation:
        raise ValidationError(f"{what} must be a number")
    # Rounding up to the next cent can still cross the limit
    if amount >= AMOUNT_LIMIT:
        raise ValidationError(f"{what} must be less than {AMOUNT_LIMIT}")
    return amount
