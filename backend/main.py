from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from infra.database.connection import init_db, close_db
from api.routers import realtime, setlists

from config import settings

# Lifespan event to handle startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()  # SQLite の初期化 (新規ならテーブル作成 + stamp、既存ならマイグレーション)
    yield
    close_db()

app = FastAPI(title="Roadie Backend API", lifespan=lifespan)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Root endpoint for health check
@app.get("/")
async def root():
    return {"message": "Roadie Backend API is running"}

# Include Routers
app.include_router(realtime.router)
app.include_router(setlists.router)
