"""
Lead Scoring
Heuristic priority score used to rank leads in the dashboard table
"""
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Union

from app.core.config import ConfigManager
from app.domain.models.lead import Lead

HOT = "hot"
WARM = "warm"
COLD = "cold"


@dataclass(frozen=True)
class ScoringWeights:
    """Weights for calculate_lead_score. Defaults match config/default.yaml."""
    source_weights: Dict[str, int] = field(
        default_factory=lambda: {"Referral": 10, "Website": 6, "Ads": 4}
    )
    default_source_weight: int = 2
    email_bonus: int = 2
    notes_bonus: int = 2
    priority_weights: Dict[str, int] = field(
        default_factory=lambda: {"High": 8, "Medium": 4, "Low": 1}
    )
    high_demand_services: FrozenSet[str] = frozenset({"Nanny", "Elder care"})
    high_demand_bonus: int = 3
    hot_threshold: int = 20
    warm_threshold: int = 10

    @classmethod
    def from_config(cls, config: Optional[ConfigManager] = None) -> "ScoringWeights":
        """Build weights from the `scoring` YAML section, falling back per key."""
        config = config or ConfigManager()
        defaults = cls()
        section = config.get("scoring", {}) or {}
        tiers = section.get("tiers", {}) or {}

        return cls(
            source_weights=dict(section.get("source_weights", defaults.source_weights)),
            default_source_weight=int(section.get("default_source_weight", defaults.default_source_weight)),
            email_bonus=int(section.get("email_bonus", defaults.email_bonus)),
            notes_bonus=int(section.get("notes_bonus", defaults.notes_bonus)),
            priority_weights=dict(section.get("priority_weights", defaults.priority_weights)),
            high_demand_services=frozenset(section.get("high_demand_services", defaults.high_demand_services)),
            high_demand_bonus=int(section.get("high_demand_bonus", defaults.high_demand_bonus)),
            hot_threshold=int(tiers.get("hot", defaults.hot_threshold)),
            warm_threshold=int(tiers.get("warm", defaults.warm_threshold)),
        )


DEFAULT_WEIGHTS = ScoringWeights()


def calculate_lead_score(lead: Lead, weights: ScoringWeights = DEFAULT_WEIGHTS) -> Union[int, float]:
    """
    Score a lead.

    A score already stored on the lead wins; a falsy stored score (None or 0)
    is recomputed. The computed value is never written back.
    """
    if lead.score:
        return lead.score

    score = weights.source_weights.get(lead.source or "", weights.default_source_weight)

    if lead.email:
        score += weights.email_bonus
    if lead.notes:
        score += weights.notes_bonus

    score += weights.priority_weights.get(lead.priority, 0)

    if lead.service_required in weights.high_demand_services:
        score += weights.high_demand_bonus

    return score


def score_class(score: Union[int, float], weights: ScoringWeights = DEFAULT_WEIGHTS) -> str:
    """hot (>= 20), warm (>= 10) or cold"""
    if score >= weights.hot_threshold:
        return HOT
    if score >= weights.warm_threshold:
        return WARM
    return COLD


class LeadScorer:
    """Scorer bound to one set of weights (loaded from YAML by default)."""

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self.weights = weights or ScoringWeights.from_config()

    def score(self, lead: Lead) -> Union[int, float]:
        return calculate_lead_score(lead, self.weights)

    def classify(self, lead: Lead) -> str:
        return score_class(self.score(lead), self.weights)


_scorer: Optional[LeadScorer] = None


def get_lead_scorer() -> LeadScorer:
    """Process-wide scorer using the YAML weights."""
    global _scorer
    if _scorer is None:
        _scorer = LeadScorer()
    return _scorer
