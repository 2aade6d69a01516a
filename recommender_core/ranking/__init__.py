"""结果评分与最终响应组装。"""

from recommender_core.ranking.aggregator import ResponseAggregator, rank, score_entities

__all__ = ["ResponseAggregator", "rank", "score_entities"]
