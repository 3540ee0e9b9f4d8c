"""
Recall Run Engine v1.0: Compliance & Economics
Pure functions. No state, no I/O. Constants live in config.py.
"""

from config import (
    BUDGET_STRESS_TIERS, FUNDING_TIERS, DEFAULT_MAINTENANCE_COST,
    LEGACY_MONTH_THRESHOLD, LEGACY_COST_MULTIPLIER,
    REGULATORY_RISK_THRESHOLD, CRITICAL_VULN_THRESHOLD,
    TAG_EOL_DEVICE, TAG_REGULATORY_RISK, TAG_CRITICAL_VULN,
    MIN_LEVEL, MAX_LEVEL,
)


def clamp(value: float, low: float = MIN_LEVEL, high: float = MAX_LEVEL) -> float:
    return max(low, min(high, value))


def _tier(funding_level) -> dict:
    key = getattr(funding_level, "value", funding_level)
    return FUNDING_TIERS.get(key, FUNDING_TIERS["full"])


# ─────────────────────────────────────────────────────
# COMPLIANCE
# ─────────────────────────────────────────────────────

def drift_compliance(level: float, funding_level, months: float,
                     past_eol: bool = False) -> float:
    """
    Apply `months` of drift for the funding tier, clamped to [0, 100].
    Full funding stops paying off once the device is past end-of-life.
    """
    tier = _tier(funding_level)
    change = tier["change"]
    if past_eol and "post_eol_change" in tier:
        change = tier["post_eol_change"]
    return clamp(level + change * months)


def compliance_tag_updates(level: float, tags, timeline_month: float,
                           eol_month: int) -> tuple:
    """
    System tags implied by the compliance level and device age.
    Returns (add, remove). eol_device is added once and never removed.
    """
    active = set(tags)
    add, remove = [], []

    def _toggle(tag: str, wanted: bool):
        if wanted and tag not in active:
            add.append(tag)
        elif not wanted and tag in active:
            remove.append(tag)

    _toggle(TAG_REGULATORY_RISK, level < REGULATORY_RISK_THRESHOLD)
    _toggle(TAG_CRITICAL_VULN, level < CRITICAL_VULN_THRESHOLD)
    if timeline_month >= eol_month and TAG_EOL_DEVICE not in active:
        add.append(TAG_EOL_DEVICE)
    return add, remove


# ─────────────────────────────────────────────────────
# BUDGET
# ─────────────────────────────────────────────────────

def monthly_maintenance_cost(device, timeline_month: float, funding_level,
                             months: float = 1) -> float:
    """Maintenance debit for `months` at the current device age and funding tier."""
    base = DEFAULT_MAINTENANCE_COST
    if device is not None and device.monthly_maintenance_cost is not None:
        base = device.monthly_maintenance_cost
    multiplier = _tier(funding_level)["cost_multiplier"]
    if timeline_month > LEGACY_MONTH_THRESHOLD:
        multiplier *= LEGACY_COST_MULTIPLIER
    return base * multiplier * months


def budget_stress_doom(budget: float, months: float = 1) -> float:
    """Doom accrued from debt. Tiers are cumulative: every crossed threshold adds its rate."""
    rate = sum(t["doom_per_month"] for t in BUDGET_STRESS_TIERS if budget < t["threshold"])
    return rate * months
