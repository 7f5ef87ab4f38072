from snapbet_jobs.services.market.odds_simulator import OddsSimulator, SimulatedOdds, moneyline_from_spread
from snapbet_jobs.services.market.score_simulator import Score, ScoreSimulator

__all__ = ["OddsSimulator", "SimulatedOdds", "moneyline_from_spread", "Score", "ScoreSimulator"]
