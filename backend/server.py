from fastapi import FastAPI, APIRouter
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
import os
import logging
from pathlib import Path

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

from database import init_db
from responses import register_exception_handlers
from routers import auth as auth_routes
from routers import events as event_routes
from routers import gallery as gallery_routes
from routers import public as public_routes
from routers import teams as team_routes
from uploads import clear_staging_dir

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


def _cors_origins():
    extra = [origin.strip() for origin in os.environ.get('CORS_ORIGINS', '').split(',') if origin.strip()]
    return DEFAULT_CORS_ORIGINS + [origin for origin in extra if origin not in DEFAULT_CORS_ORIGINS]


app = FastAPI(title="UniConnect API", version="1.0.0")
register_exception_handlers(app)

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth_routes.router)
api_router.include_router(gallery_routes.router)
api_router.include_router(team_routes.router)
api_router.include_router(event_routes.router)


# ==================== STARTUP ====================
@app.on_event("startup")
async def startup_event():
    init_db()
    # Leftovers from a previous run are never reused
    clear_staging_dir()
    logger.info("UniConnect API started")


# Include routers and add middleware
app.include_router(public_routes.router)
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=_cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)


if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
