"""English amount-in-words rendering for printed invoices.

Example:
    >>> amount_to_words(Decimal("1234.50"))
    'One thousand two hundred thirty-four and 50/100'
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation

from estatebill.errors import ValidationError

ONES = [
    "", "one", "two", "three", "four", "five", "six", "seven", "eight", "nine",
    "ten", "eleven", "twelve", "thirteen", "fourteen", "fifteen", "sixteen",
    "seventeen", "eighteen", "nineteen",
]  # fmt: skip

TENS = ["", "", "twenty", "thirty", "forty", "fifty", "sixty", "seventy", "eighty", "ninety"]

SCALES = ["", "thousand", "million", "billion", "trillion"]

# One past the largest amount that has a scale word
UPPER_BOUND = Decimal(1000) ** len(SCALES)


def _to_decimal(amount) -> Decimal:
    if isinstance(amount, Decimal):
        value = amount
    else:
        try:
            # floats go through str() so 1234.5 is read as written
            value = Decimal(str(amount))
        except (InvalidOperation, ValueError) as e:
            raise ValidationError(f"Amount is not a number: {amount!r}") from e
    if not value.is_finite():
        raise ValidationError(f"Amount is not a finite number: {amount!r}")
    return value


def _chunk_to_words(chunk: int) -> str:
    """Render 1-999 as words."""
    parts = []
    hundreds, remainder = divmod(chunk, 100)
    if hundreds:
        parts.append(f"{ONES[hundreds]} hundred")
    if remainder:
        if remainder < 20:
            parts.append(ONES[remainder])
        else:
            tens, ones = divmod(remainder, 10)
            parts.append(TENS[tens] + (f"-{ONES[ones]}" if ones else ""))
    return " ".join(parts)


def integer_to_words(number: int) -> str:
    """Spell a non-negative integer below one quadrillion, lowercase."""
    if number == 0:
        return "zero"

    groups = []
    scale_index = 0
    while number > 0:
        number, chunk = divmod(number, 1000)
        if chunk:
            words = _chunk_to_words(chunk)
            if SCALES[scale_index]:
                words = f"{words} {SCALES[scale_index]}"
            groups.append(words)
        scale_index += 1
    return " ".join(reversed(groups))


def amount_to_words(amount: Decimal | int | float | str) -> str:
    """Convert an amount to English words for printing on an invoice.

    Cents are truncated to two digits and appended as "and NN/100" when
    non-zero. A whole zero amount renders as "zero"; otherwise only the
    first letter is capitalized. No currency name is included.

    Args:
        amount: Non-negative amount below one quadrillion

    Returns:
        Amount in words, e.g. "Twenty-one" or "One hundred and 5/100"

    Raises:
        ValidationError: If the amount is negative, not a number, or too large
    """
    value = _to_decimal(amount)
    if value < 0:
        raise ValidationError(f"Amount must not be negative: {value}")
    if value >= UPPER_BOUND:
        raise ValidationError(f"Amount too large to spell: {value}")

    whole = int(value)
    cents = int(((value - whole) * 100).to_integral_value(rounding=ROUND_DOWN))

    if whole == 0 and cents == 0:
        return "zero"

    result = integer_to_words(whole)
    if cents:
        result = f"{result} and {cents}/100"
    return result[0].upper() + result[1:]


__all__ = ["amount_to_words", "integer_to_words"]
