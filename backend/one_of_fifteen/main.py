from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .registry import registry
from .schemas import StateUpdate
from .websocket import serve_game_socket


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await registry.close()


app = FastAPI(title="1 of 15 API", lifespan=lifespan)

origins = settings.cors_origins
origin_regex = settings.CORS_ORIGIN_REGEX or None

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_origin_regex=origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health():
    return {"ok": True}


@app.get("/api/games/{game_id}/state", response_model=StateUpdate)
async def get_state(game_id: str):
    session = registry.get(game_id)
    if not session:
        raise HTTPException(404, "Game not found")
    return session.get_state()


@app.websocket("/api/games/{game_id}/ws")
async def game_socket(websocket: WebSocket, game_id: str):
    await serve_game_socket(websocket, registry.get_or_create(game_id))
