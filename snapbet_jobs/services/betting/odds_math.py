"""
American odds arithmetic.

All amounts are integer cents and every division floors, so a payout is
never rounded up in the user's favor.

Examples:
    >>> calculate_payout(1000, -110)
    909
    >>> calculate_payout(1000, 150)
    1500
    >>> calculate_total_return(2000, -110)
    3818
"""


def calculate_payout(stake: int, odds: int) -> int:
    """
    Profit on a winning bet, excluding the returned stake.

    Negative odds (favorite) pay ``stake * 100 / |odds|``; positive odds
    (underdog) pay ``stake * odds / 100``.

    Raises:
        ValueError: if odds are zero or stake is negative
    """
    if odds == 0:
        raise ValueError("American odds cannot be zero")
    if stake < 0:
        raise ValueError(f"Stake cannot be negative: {stake}")

    if odds < 0:
        return stake * 100 // abs(odds)
    return stake * odds // 100


def calculate_total_return(stake: int, odds: int) -> int:
    """Stake plus profit on a winning bet."""
    return stake + calculate_payout(stake, odds)
