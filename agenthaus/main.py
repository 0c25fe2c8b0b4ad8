from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from agenthaus import __version__
from agenthaus.db.database import init_models
from agenthaus.errors import AgentNotFound, ChannelAuthFailed
from agenthaus.routers import agents, cron, webhooks


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create Tables
    await init_models()
    logger.info(f"AgentHaus API {__version__} started")
    yield


app = FastAPI(title="AgentHaus Agent Platform API", version=__version__, lifespan=lifespan)

app.include_router(agents.router)
app.include_router(cron.router)
app.include_router(cron.tick_router)
app.include_router(webhooks.router)


@app.exception_handler(AgentNotFound)
async def agent_not_found_handler(request: Request, exc: AgentNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ChannelAuthFailed)
async def channel_auth_handler(request: Request, exc: ChannelAuthFailed):
    logger.warning(f"Rejected webhook on {request.url.path}: {exc}")
    return JSONResponse(status_code=401, content={"detail": "Unauthorized"})


@app.get("/health")
def health_check():
    return {"status": "ok"}
