"""
Installment labels printed on checks.

Checks written before instruments carried an installment_id are linked to
their installment only by a label such as "Chèque pour paiement #3" in the
description.  These helpers build, match and renumber that label.  Matching
ignores case ("Paiement #3" and "paiement #3" are the same label) and never
matches a longer number ("#1" does not match "#12").
"""

import re

DEFAULT_LABEL_TEMPLATE = "paiement #{number}"
DESCRIPTION_PREFIX = "Chèque pour "


def installment_label(number: int, template: str = DEFAULT_LABEL_TEMPLATE) -> str:
    return template.format(number=number)


def instrument_description(
    number: int, template: str = DEFAULT_LABEL_TEMPLATE
) -> str:
    """Description given to checks created for installment `number`."""
    return f"{DESCRIPTION_PREFIX}{installment_label(number, template)}"


def _label_pattern(template: str) -> re.Pattern:
    prefix, _, suffix = template.partition("{number}")
    pattern = rf"(?P<prefix>{re.escape(prefix)})(?P<number>\d+)(?!\d)"
    if suffix:
        pattern += rf"(?={re.escape(suffix)})"
    return re.compile(pattern, re.IGNORECASE)


def references_installment(
    description: str | None,
    number: int,
    template: str = DEFAULT_LABEL_TEMPLATE,
) -> bool:
    """True if the description carries the label of installment `number`."""
    if not description:
        return False
    return any(
        int(match.group("number")) == number
        for match in _label_pattern(template).finditer(description)
    )


def rewrite_installment_reference(
    description: str | None,
    old_number: int,
    new_number: int,
    template: str = DEFAULT_LABEL_TEMPLATE,
) -> str | None:
    """
    Replace the label of installment `old_number` with `new_number`.

    The matched prefix keeps its original capitalisation.  Descriptions
    without the label are returned unchanged.
    """
    if not description:
        return description

    def _swap(match: re.Match) -> str:
        if int(match.group("number")) != old_number:
            return match.group(0)
        return f"{match.group('prefix')}{new_number}"

    return _label_pattern(template).sub(_swap, description)
