"""地理评分工具。"""

from recommender_core.geo.scorer import combined_score, distance_km, proximity_score

__all__ = ["combined_score", "distance_km", "proximity_score"]
