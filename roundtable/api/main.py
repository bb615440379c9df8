import logging

from fastapi import FastAPI
from roundtable.api.routes.workflow import router as workflow_router
from roundtable.config import settings

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Roundtable: long-form writing workflow", version="0.1.0")
app.include_router(workflow_router)

@app.get("/health")
async def health():
    return {"status": "ok"}
