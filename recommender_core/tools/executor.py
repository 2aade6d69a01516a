import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from recommender_core.domain.catalog import EntityKind
from recommender_core.domain.exceptions import (
    CapabilityExecutionError,
    CapabilityNotFound,
    InvalidArguments,
)
from recommender_core.domain.recommendation import SearchParams, SimilarProductsParams
from .capabilities import Capability, default_tool_defs
from .definitions import ToolDef
from .search import CatalogSearchAdapter

_PAYLOAD_KEYS: Dict[EntityKind, str] = {
    EntityKind.PRODUCT: "productIds",
    EntityKind.STORE: "storeIds",
    EntityKind.PROMOTION: "promotionIds",
}


@dataclass
class CapabilityResult:
    """一次能力调用的结果，恰好对应一种实体类型。"""

    capability: Capability
    ids: List[int]

    @property
    def kind(self) -> EntityKind:
        return self.capability.result_kind

    def to_payload(self) -> Dict[str, Any]:
        return {_PAYLOAD_KEYS[self.kind]: list(self.ids)}


def error_payload(capability_name: str, message: str) -> Dict[str, Any]:
    return {"error": message, "capabilityName": capability_name}


def parse_arguments(raw: Union[str, Mapping[str, Any], None], capability: Optional[str] = None) -> Dict[str, Any]:
    """把模型给出的 arguments 文本解析为 dict，失败抛 InvalidArguments。"""

    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    text = str(raw).strip()
    if not text:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidArguments(f"arguments are not valid JSON ({exc.msg})", capability) from exc
    except RecursionError as exc:
        raise InvalidArguments("arguments are nested too deeply", capability) from exc
    if not isinstance(data, dict):
        raise InvalidArguments("arguments must be a JSON object", capability)
    return data


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


class CapabilityRegistry:
    """能力注册表：能力名 -> 处理函数。

    本身无请求级状态，多个请求可以共享同一个实例。
    """

    def __init__(self, adapter: CatalogSearchAdapter, capabilities: Optional[Sequence[Capability]] = None):
        self._adapter = adapter
        self._enabled = tuple(capabilities) if capabilities else tuple(Capability)

    @property
    def capabilities(self) -> Sequence[Capability]:
        return self._enabled

    def tool_defs(self) -> List[ToolDef]:
        names = {c.value for c in self._enabled}
        return [d for d in default_tool_defs() if d.name in names]

    def resolve(self, name: str) -> Capability:
        capability = Capability.lookup(name)
        if capability is None or capability not in self._enabled:
            raise CapabilityNotFound(name)
        return capability

    def dispatch(self, name: str, arguments: Union[str, Mapping[str, Any], None]) -> CapabilityResult:
        """执行一次能力调用。

        Raises:
            CapabilityNotFound: 能力未注册（致命）。
            InvalidArguments: 参数无法解析或字段校验失败（可恢复）。
            CapabilityExecutionError: 处理函数内部失败（可恢复）。
        """

        capability = self.resolve(name)
        args = parse_arguments(arguments, name)
        if capability is Capability.SEARCH_SIMILAR_PRODUCTS:
            params = self._validate(SimilarProductsParams, args, name)
            return self._run(capability, self._adapter.search_similar_products, params)
        params = self._validate(SearchParams, args, name)
        if capability is Capability.SEARCH_PRODUCTS:
            return self._run(capability, self._adapter.search_products, params)
        if capability is Capability.SEARCH_STORES:
            return self._run(capability, self._adapter.search_stores, params)
        if capability is Capability.SEARCH_PROMOTIONS:
            return self._run(capability, self._adapter.search_promotions, params)
        raise CapabilityNotFound(name)

    @staticmethod
    def _validate(model, args: Dict[str, Any], name: str):
        try:
            return model.model_validate(args)
        except ValidationError as exc:
            raise InvalidArguments(_describe_validation_error(exc), name) from exc

    @staticmethod
    def _run(capability: Capability, handler, params) -> CapabilityResult:
        try:
            ids = handler(params)
        except Exception as exc:
            raise CapabilityExecutionError(capability.value, exc) from exc
        return CapabilityResult(capability=capability, ids=list(ids))
