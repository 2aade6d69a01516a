"""State definition for the recommendation conversation graph."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, TypedDict

from recommender_core.domain.models import ChatMessage
from recommender_core.domain.recommendation import (
    Accumulator,
    Intent,
    RecommendationRequest,
    RecommendationResponse,
)
from recommender_core.tools.definitions import ToolCall


class ConversationState(TypedDict, total=False):
    """State shared across graph nodes; lives for exactly one request."""

    request: RecommendationRequest
    messages: List[ChatMessage]
    accumulator: Accumulator
    iteration: int
    pending_calls: List[ToolCall]
    final_text: Optional[str]
    intent: Optional[Intent]
    response: Optional[RecommendationResponse]
    log_ctx: Dict[str, Any]
