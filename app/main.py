from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import agents, chat, expert, projects, review
from app.config import settings
from app.services import logger as log_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_service.log_event(
        event_type="startup",
        message="ReviewPanel API starting",
        transport=settings.llm_transport,
        supabase=settings.supabase_configured,
    )
    yield


app = FastAPI(
    title="ReviewPanel",
    description="Multi-agent review panel for research project proposals",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(review.router)
app.include_router(expert.router)
app.include_router(chat.router)
app.include_router(projects.router)
app.include_router(agents.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "reviewpanel"}
