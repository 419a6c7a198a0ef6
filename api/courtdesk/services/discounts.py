"""Court discount resolution.

The first rule in stored order that covers the hour wins, even when a later
rule would give a bigger discount. Club admins order the rules; reordering
them changes prices.
"""

from courtdesk.records import CourtRecord, DiscountRule


def resolve_discount(court: CourtRecord | None, hour: int) -> DiscountRule | None:
    """Return the discount rule for an hour (0-23), or None."""
    if court is None:
        return None

    for rule in court.discount_rules:
        if rule.applies_to(hour):
            return rule
    return None


def discount_percentage(court: CourtRecord | None, hour: int) -> float:
    rule = resolve_discount(court, hour)
    return rule.percentage if rule else 0
