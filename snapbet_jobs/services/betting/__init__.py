from snapbet_jobs.services.betting.odds_math import calculate_payout, calculate_total_return
from snapbet_jobs.services.betting.outcome_calculator import Outcome, calculate_outcome
from snapbet_jobs.services.betting.settlement_service import (
    SettlementPreview,
    SettlementResult,
    SettlementService,
)

__all__ = [
    "calculate_payout",
    "calculate_total_return",
    "Outcome",
    "calculate_outcome",
    "SettlementPreview",
    "SettlementResult",
    "SettlementService",
]
