from fastapi import FastAPI

from core.config import apply_cors
from routers.draft_router import router as draft_router


def create_app() -> FastAPI:
    app = FastAPI(title="BPMN Draft AI")
    apply_cors(app)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    # routers
    app.include_router(draft_router)

    return app


app = create_app()
