import re

from casino.errors import ValidationFailed

QUBIC_ID_PATTERN = re.compile(r"^[A-Z]{60}$")


def normalize_public_id(value) -> str:
    """Trim and upper-case a Qubic public id, then check it is 60 letters A-Z.

    Raises:
        ValidationFailed: when the id is missing or malformed
    """
    if not isinstance(value, str):
        raise ValidationFailed("Public id is required", field="wallet_id")
    wallet_id = value.strip().upper()
    if not QUBIC_ID_PATTERN.match(wallet_id):
        raise ValidationFailed("Invalid Qubic public id", field="wallet_id")
    return wallet_id


def require_positive_int(value, field: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationFailed(f"{field} must be a positive integer", field=field)
    return value


def require_token(value, field: str = "bet_tx_id") -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailed(f"{field} is required", field=field)
    return value.strip()
