"""本地开发启动入口，等价于 `uvicorn recommender_core.api.app:app --reload`。"""

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "recommender_core.api.app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
