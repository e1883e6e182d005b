"""Carrier classification from the shape of a tracking code.

Rules are evaluated strictly in order and the first match wins. Lettered and
long fixed-prefix rules sit above the purely numeric ones because several
regional carriers share numeric lengths with the international catch-alls
(a 10-digit code is DHL only if no regional prefix rule claimed it first).
"""

import re
from collections.abc import Callable

Rule = tuple[Callable[[str], bool], str]

MERCHANT_ORDER_RE = re.compile(r"\d{3}-\d{7}-\d{7}")


def _full(pattern: str, ignore_case: bool = False) -> Callable[[str], bool]:
    compiled = re.compile(pattern, re.IGNORECASE if ignore_case else 0)
    return lambda code: compiled.fullmatch(code) is not None


def _prefix(prefix: str, min_length: int = 0) -> Callable[[str], bool]:
    prefix = prefix.upper()
    return lambda code: code.upper().startswith(prefix) and len(code) >= min_length


def _any_prefix(*prefixes: str) -> Callable[[str], bool]:
    return lambda code: any(code.upper().startswith(p) for p in prefixes)


CARRIER_RULES: tuple[Rule, ...] = (
    # Merchant marketplace
    (lambda code: MERCHANT_ORDER_RE.fullmatch(code) is not None, "Amazon"),
    (_prefix("TBA", 12), "Amazon"),
    # International carriers with distinctive prefixes
    (_prefix("1Z", 18), "UPS"),
    (_prefix("96", 20), "FedEx"),
    (_prefix("94", 20), "USPS"),
    (_any_prefix("9400", "9205", "9361"), "USPS"),
    (_full(r"\d{20,22}"), "USPS"),
    (_prefix("JD", 10), "DHL"),
    # Regional carriers with letter prefixes
    (_prefix("DEP"), "Deprisa"),
    (_any_prefix("PIC", "PKP"), "Picap"),
    (_full(r"MU\d{6,10}", ignore_case=True), "Mensajeros Urbanos"),
    (_full(r"L\d{8,12}", ignore_case=True), "Listo"),
    (_full(r"T\d{9}", ignore_case=True), "Treda"),
    (_full(r"S\d{10}", ignore_case=True), "Speed"),
    (_full(r"C\d{9,10}", ignore_case=True), "Castores"),
    # Regional carriers with numeric prefixes, ahead of the numeric catch-alls
    (_full(r"24\d{10}"), "Interrapidísimo"),
    (_full(r"134\d{8}"), "Avianca Cargo"),
    (_full(r"1\d{12}"), "Envía"),
    (_full(r"7\d{9,11}"), "TCC"),
    (_full(r"3\d{8,9}"), "Saferbo"),
    (_full(r"20\d{6,7}"), "Deprisa"),
    (_full(r"[5-8]\d{9}"), "Coordinadora"),
    (_full(r"9\d{9,10}"), "Servientrega"),
    # Numeric catch-alls
    (_full(r"\d{10}"), "DHL"),
    (_full(r"\d{12}"), "FedEx"),
    (_full(r"\d{15}"), "FedEx"),
)


def classify(code: str) -> str | None:
    """Return the carrier label for a tracking code, or None if nothing matches."""
    code = code.strip()
    if not code:
        return None
    for matches, label in CARRIER_RULES:
        if matches(code):
            return label
    return None


def is_merchant_code(code: str) -> bool:
    """Whether the code is a merchant order number or merchant shipment id."""
    code = code.strip().upper()
    return (
        MERCHANT_ORDER_RE.fullmatch(code) is not None
        or code.startswith("TBA")
        or code.startswith("AMZ")
    )
