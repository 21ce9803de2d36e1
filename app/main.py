import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.config import settings
from app.database import create_tables, async_session
from app.dependencies import verify_api_key
from app.seed import seed_data
from app.routers.auth import router as auth_router
from app.routers.groups import router as groups_router
from app.routers.photos import router as photos_router
from app.routers.submissions import router as submissions_router
from app.routers.reactions import router as reactions_router
from app.services.storage import LOCAL_MEDIA_URL, local_media_root
from app.utils.exceptions import register_exception_handlers


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    async with async_session() as session:
        await seed_data(session)
    yield


app = FastAPI(
    title="Scavenger Hunt API",
    description="Group scavenger hunt with AI-judged photo submissions",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

_api_key_dep = [Depends(verify_api_key)]

app.include_router(auth_router, prefix="/api/v1", dependencies=_api_key_dep)
app.include_router(groups_router, prefix="/api/v1", dependencies=_api_key_dep)
app.include_router(photos_router, prefix="/api/v1", dependencies=_api_key_dep)
app.include_router(submissions_router, prefix="/api/v1", dependencies=_api_key_dep)
app.include_router(reactions_router, prefix="/api/v1", dependencies=_api_key_dep)

if settings.storage_backend != "s3":
    os.makedirs(local_media_root(), exist_ok=True)
    app.mount(LOCAL_MEDIA_URL, StaticFiles(directory=local_media_root()), name="media")


@app.get("/health")
async def health_check():
    return {"status": "success", "data": {"service": "scavenger-hunt-api", "version": "0.1.0"}, "message": None}
