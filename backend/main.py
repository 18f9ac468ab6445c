"""FastAPI application for the reporter HTTP bridge."""

import logging
import os
from contextlib import asynccontextmanager

import litellm
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.routes.chat import router as chat_router
from reporter.config import load_config
from reporter.runtime import open_runtime

load_dotenv()
litellm.drop_params = True

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Suppress noisy loggers
logging.getLogger("LiteLLM").setLevel(logging.WARNING)
logging.getLogger("litellm").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("mcp").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the runtime for the lifetime of the server."""
    logger.info("Starting reporter backend...")
    config = load_config()
    async with open_runtime(config) as runtime:
        app.state.runtime = runtime
        logger.info(f"Session {runtime.session.session_id} ready")
        yield
        logger.info("Shutting down reporter backend...")
        runtime.session.interrupt()
        app.state.runtime = None


app = FastAPI(
    title="Reporter",
    description="Work-reporting assistant API",
    version="0.1.0",
    lifespan=lifespan,
)

allowed_origins = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
]
extra_origin = os.environ.get("REPORTER_ALLOWED_ORIGIN")
if extra_origin:
    allowed_origins.append(extra_origin)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat_router)


@app.get("/api")
async def api_root():
    """API root endpoint."""
    return {
        "name": "Reporter API",
        "version": "0.1.0",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 7860))
    uvicorn.run(app, host="127.0.0.1", port=port)
