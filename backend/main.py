"""
FieldBoard Backend (FastAPI)

Serves the image import proxy and the workspace snapshot store.

Run locally:
    cd backend
    uvicorn main:app --reload
"""

import logging
import os

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from image_proxy import method_not_allowed_handler, router as image_proxy_router
from workspace import workspace_router


def setup_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="FieldBoard API",
        description="Image import proxy and workspace sync",
    )
    app.add_exception_handler(StarletteHTTPException, method_not_allowed_handler)
    app.include_router(image_proxy_router)
    app.include_router(workspace_router)
    return app


setup_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
