"""LangGraph construction and node implementations for the recommendation loop.

Graph: prompt -> completion -> (dispatch -> completion)* -> finalize.

- completion 节点负责迭代上限：第 max_iterations 次调用之后仍需调用时抛 MaxIterationsExceeded。
- dispatch 节点按顺序执行本轮所有能力调用；参数错误和执行错误作为 tool 消息回传给模型，
  未注册的能力直接中断请求。
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from recommender_core.domain.catalog import Coordinates
from recommender_core.domain.exceptions import (
    CapabilityExecutionError,
    InvalidArguments,
    MaxIterationsExceeded,
)
from recommender_core.domain.models import ChatMessage
from recommender_core.domain.recommendation import RecommendationRequest
from recommender_core.flows.state import ConversationState
from recommender_core.infrastructure.logging.logger import logger
from recommender_core.prompts import load_system_prompt
from recommender_core.providers.completion import CompletionClient
from recommender_core.ranking.aggregator import ResponseAggregator
from recommender_core.tools.definitions import ToolCall, ToolDef
from recommender_core.tools.executor import CapabilityRegistry, error_payload, parse_arguments


def _log(level: int, message: str, state: ConversationState, **fields: Any) -> None:
    payload = dict(state.get("log_ctx") or {})
    payload.update(fields)
    logger.log(level, message, extra={"extra": payload})


def build_system_prompt(request: RecommendationRequest) -> str:
    prompt = load_system_prompt("recommender")
    if request.coordinates is None:
        return prompt
    radius = f", radius={request.radius_km}" if request.radius_km is not None else ""
    return (
        f"{prompt}\n\nThe user's location is known: latitude={request.coordinates.latitude}, "
        f"longitude={request.coordinates.longitude}{radius}. Include these values in every search call."
    )


def with_caller_location(
    arguments: Mapping[str, Any],
    coordinates: Optional[Coordinates],
    radius_km: Optional[int],
) -> Dict[str, Any]:
    """返回补充了调用方位置的新参数 dict，不修改原参数。

    坐标作为一对处理：模型两者都没给时才补；半径同理，只在模型没给时补。
    """

    merged = dict(arguments)
    if coordinates is not None and merged.get("latitude") is None and merged.get("longitude") is None:
        merged["latitude"] = coordinates.latitude
        merged["longitude"] = coordinates.longitude
    if radius_km is not None and merged.get("radius") is None:
        merged["radius"] = radius_km
    return merged


def prompt_node(state: ConversationState) -> Dict[str, Any]:
    request = state["request"]
    messages = [
        ChatMessage(role="system", content=build_system_prompt(request)),
        ChatMessage(role="user", content=request.query),
    ]
    _log(logging.INFO, "prompt_node.built", state, has_location=request.coordinates is not None)
    return {"messages": messages}


def completion_node(
    state: ConversationState,
    completion: CompletionClient,
    tool_defs: Sequence[ToolDef],
    max_iterations: int,
) -> Dict[str, Any]:
    iteration = state.get("iteration", 0)
    if iteration >= max_iterations:
        _log(logging.ERROR, "completion_node.max_iterations", state, max_iterations=max_iterations)
        raise MaxIterationsExceeded(max_iterations)
    iteration += 1
    messages = state["messages"]
    _log(logging.INFO, "completion_node.start", state, iteration=iteration, message_count=len(messages))

    result = completion.complete(messages, tool_defs, log_ctx=state.get("log_ctx"))
    calls = result.tool_calls
    if not calls:
        _log(logging.INFO, "completion_node.final", state, iteration=iteration, attempts=result.attempts)
        return {"iteration": iteration, "pending_calls": [], "final_text": result.message.content or ""}

    messages.append(
        ChatMessage(role="assistant", content=result.message.content or "", tool_calls=list(calls))
    )
    _log(
        logging.INFO,
        "completion_node.tool_calls",
        state,
        iteration=iteration,
        call_count=len(calls),
        capabilities=[c.name for c in calls],
    )
    return {"iteration": iteration, "messages": messages, "pending_calls": list(calls)}


def _execute_call(state: ConversationState, registry: CapabilityRegistry, call: ToolCall) -> str:
    request = state["request"]
    registry.resolve(call.name)
    try:
        arguments = parse_arguments(call.arguments, call.name)
        arguments = with_caller_location(arguments, request.coordinates, request.radius_km)
        _log(logging.INFO, "dispatch_node.call", state, capability=call.name, argument_keys=sorted(arguments))
        result = registry.dispatch(call.name, arguments)
    except (InvalidArguments, CapabilityExecutionError) as exc:
        _log(logging.WARNING, "dispatch_node.tool_error", state, capability=call.name, code=exc.code, error=exc.message)
        return json.dumps(error_payload(call.name, exc.message), ensure_ascii=False)
    added = state["accumulator"].merge(result.kind, result.ids)
    _log(logging.INFO, "dispatch_node.result", state, capability=call.name, returned=len(result.ids), added=added)
    return json.dumps(result.to_payload(), ensure_ascii=False)


def dispatch_node(state: ConversationState, registry: CapabilityRegistry) -> Dict[str, Any]:
    messages = state["messages"]
    pending: List[ToolCall] = state.get("pending_calls") or []
    for call in pending:
        content = _execute_call(state, registry, call)
        messages.append(ChatMessage(role="tool", content=content, tool_call_id=call.id, name=call.name))
    return {"messages": messages, "pending_calls": []}


def finalize_node(state: ConversationState, aggregator: ResponseAggregator) -> Dict[str, Any]:
    request = state["request"]
    accumulator = state["accumulator"]
    intent = request.explicit_intent or accumulator.inferred_intent()
    response = aggregator.build(
        text=state.get("final_text") or "",
        intent=intent,
        accumulator=accumulator,
        max_results=request.max_results,
        coordinates=request.coordinates,
        radius_km=request.radius_km,
    )
    _log(logging.INFO, "finalize_node.done", state, intent=intent.value, collected=accumulator.counts())
    return {"intent": intent, "response": response}


def completion_router(state: ConversationState) -> str:
    if state.get("pending_calls"):
        return "dispatch"
    return "finalize"


def build_graph(
    completion: CompletionClient,
    registry: CapabilityRegistry,
    aggregator: ResponseAggregator,
    max_iterations: int,
) -> CompiledStateGraph:
    tool_defs = registry.tool_defs()
    graph = StateGraph(ConversationState)
    graph.add_node("prompt", prompt_node)
    graph.add_node("completion", lambda s: completion_node(s, completion, tool_defs, max_iterations))
    graph.add_node("dispatch", lambda s: dispatch_node(s, registry))
    graph.add_node("finalize", lambda s: finalize_node(s, aggregator))
    graph.set_entry_point("prompt")
    graph.add_edge("prompt", "completion")
    graph.add_conditional_edges("completion", completion_router, {"dispatch": "dispatch", "finalize": "finalize"})
    graph.add_edge("dispatch", "completion")
    graph.add_edge("finalize", END)
    return graph.compile()
