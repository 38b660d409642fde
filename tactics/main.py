from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tactics.config import settings
from tactics.routers import combat

app = FastAPI(
    title="Tactics Combat Engine",
    description="Deterministic turn resolution for tactical RPG combat sessions",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(combat.router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
