"""
Centralized Broker Classification Utility.
Holds the broker reference tables used by bandarmology analysis and provides
classification and formatting helpers.
"""
from typing import Dict, FrozenSet, Iterable, Optional

# Broker type flag for foreign brokers in the broker summary source
BROKER_TYPE_FOREIGN = "Asing"

# Large local institutions and foreign houses treated as "smart money"
SMART_MONEY_BROKER_CODES: FrozenSet[str] = frozenset({
    "ZP", "AK", "IF", "SQ", "BB", "CP", "DX", "KI", "EP",
    "DH", "AF", "BZ", "FS", "AI", "ID", "AG", "EB",
})

# Foreign broker codes, used when a summary row carries no broker_type
FOREIGN_BROKER_CODES: FrozenSet[str] = frozenset({
    "AK", "BK", "CG", "CS", "DP", "GW", "KZ", "MS", "RX", "YU", "ZP",
})


def normalize_code(broker_code: Optional[str]) -> str:
    """Uppercase and strip a broker code."""
    return (broker_code or "").strip().upper()


def is_foreign(broker: Dict) -> bool:
    """A broker row is foreign when flagged 'Asing'."""
    return broker.get("broker_type") == BROKER_TYPE_FOREIGN


def is_smart_money(broker: Dict, smart_money_codes: Iterable[str] = SMART_MONEY_BROKER_CODES) -> bool:
    """Smart money = reference broker codes plus every foreign broker."""
    return normalize_code(broker.get("broker_code")) in smart_money_codes or is_foreign(broker)


def is_institutional(broker: Dict, smart_money_codes: Iterable[str] = SMART_MONEY_BROKER_CODES) -> bool:
    """Institutional cohort: smart money plus known foreign broker codes."""
    return (
        is_smart_money(broker, smart_money_codes)
        or normalize_code(broker.get("broker_code")) in FOREIGN_BROKER_CODES
    )


def classify_broker(broker: Dict, smart_money_codes: Iterable[str] = SMART_MONEY_BROKER_CODES) -> str:
    """
    Classify a broker row into primary category.

    Returns:
        'foreign', 'institutional' or 'retail'
    """
    code = normalize_code(broker.get("broker_code"))
    if is_foreign(broker) or code in FOREIGN_BROKER_CODES:
        return "foreign"
    if code in smart_money_codes:
        return "institutional"
    return "retail"


def format_rupiah(value: float) -> str:
    """Compact Rupiah formatting (T = trillion, B = billion, M = million)."""
    if value >= 1e12:
        return f"Rp {value / 1e12:.2f}T"
    if value >= 1e9:
        return f"Rp {value / 1e9:.2f}B"
    if value >= 1e6:
        return f"Rp {value / 1e6:.2f}M"
    return f"Rp {value:,.0f}"
