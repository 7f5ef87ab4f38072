"""Background jobs for SnapBet: settlement, odds, badges, stats and content lifecycle."""

__version__ = "1.0.0"
