"""UPI payment deep links. Payment is user-attested; no callback is ever received."""

import secrets
import time
from enum import Enum
from typing import Optional
from urllib.parse import quote

from ...config import UPI_PAYEE_NAME, UPI_PAYEE_VPA


class PaymentMethod(str, Enum):
    UPI = "upi"
    PAY_LATER = "pay-later"


def generate_transaction_id(now_ms: Optional[int] = None) -> str:
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"TXN{now_ms}{secrets.token_hex(2).upper()}"


def build_upi_link(
    amount: int,
    note: str,
    transaction_id: str,
    payee_vpa: str = UPI_PAYEE_VPA,
    payee_name: str = UPI_PAYEE_NAME,
) -> str:
    """
    Build a upi://pay deep link.

    Example:
        upi://pay?pa=clinic@upi&pn=Dr.%20Deogade%20Clinic&am=150&cu=INR&tn=General%20Physician&tid=TXN1
    """
    params = [
        ("pa", payee_vpa),
        ("pn", payee_name),
        ("am", str(amount)),
        ("cu", "INR"),
        ("tn", note),
        ("tid", transaction_id),
    ]
    query = "&".join(f"{key}={quote(value, safe='@.')}" for key, value in params)
    return f"upi://pay?{query}"
