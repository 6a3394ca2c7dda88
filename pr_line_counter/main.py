import sys
from typing import Any

import fastapi
import uvicorn

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from pr_line_counter.webhook import router as webhook_router


app = FastAPI(title="PR Line Counter")

app.include_router(webhook_router, tags=["webhook"])


@app.get("/", response_class=PlainTextResponse)
def root() -> str:
    return "PR Line Counter is running! 🚀"


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "PR Line Counter is operational and waiting for GitHub webhooks.",
        "environment": {
            "python version": sys.version,
            "fastapi version": fastapi.__version__,
            "uvicorn version": uvicorn.__version__,
        },
    }
