from recommender_core.agents.recommendation_agent import RecommendationEngine

__all__ = ["RecommendationEngine"]
