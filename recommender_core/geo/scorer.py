"""地理距离与邻近度评分（纯函数）。"""

import math
from typing import Optional

EARTH_RADIUS_KM = 6371.0
PROXIMITY_HORIZON_KM = 50.0

RELEVANCE_WEIGHT = 0.7
DISTANCE_WEIGHT = 0.3


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """haversine 大圆距离，单位公里，保留两位小数。"""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_KM * c, 2)


def proximity_score(distance: float) -> float:
    """距离越近分数越高：0 km 为 1.0，50 km 及以上为 0.0。"""

    return 1 - min(distance / PROXIMITY_HORIZON_KM, 1)


def combined_score(relevance: float, distance: Optional[float]) -> float:
    """相关度与邻近度加权。没有距离时直接返回相关度。"""

    if distance is None:
        return relevance
    return RELEVANCE_WEIGHT * relevance + DISTANCE_WEIGHT * proximity_score(distance)
