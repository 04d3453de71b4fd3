"""Reporting entities: U.S. states plus DC, Puerto Rico and the Virgin Islands."""

from __future__ import annotations

STATE_CODES: frozenset[str] = frozenset(
    {
        'AK', 'AL', 'AR', 'AZ', 'CA', 'CO', 'CT', 'DE', 'FL', 'GA',
        'HI', 'IA', 'ID', 'IL', 'IN', 'KS', 'KY', 'LA', 'MA', 'MD',
        'ME', 'MI', 'MN', 'MO', 'MS', 'MT', 'NC', 'ND', 'NE', 'NH',
        'NJ', 'NM', 'NV', 'NY', 'OH', 'OK', 'OR', 'PA', 'RI', 'SC',
        'SD', 'TN', 'TX', 'UT', 'VA', 'VT', 'WA', 'WI', 'WV', 'WY',
        # Non-state reporting units
        'DC', 'PR', 'VI',
    }
)


def normalize_state(code: str) -> str:
    """Return the canonical upper-case code for *code*.

    Raises
    ------
    ValueError
        If the code is not a known reporting entity.
    """
    canonical = code.strip().upper()
    if canonical not in STATE_CODES:
        raise ValueError(f'Unknown state code: {code!r}')
    return canonical
