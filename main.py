import uvicorn, logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from skillswap.config.settings import settings

from skillswap.routes.auth_route import router as auth_route
from skillswap.routes.profile_route import router as profile_route
from skillswap.routes.swap_route import router as swap_route
from skillswap.routes.chat_route import router as chat_route
from skillswap.routes.upload_route import router as upload_route
from skillswap.routes.realtime_route import router as realtime_route

handlers = [logging.StreamHandler()]
if settings.LOG_FILE:
    handlers.append(logging.FileHandler(settings.LOG_FILE))

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=handlers
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="SkillSwap API",
    description="Skill exchange between users: profiles, swaps and real-time messaging",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# register the routes
app.include_router(auth_route, prefix="/auth")
app.include_router(profile_route, prefix="/profile")
app.include_router(swap_route, prefix="/swaps")
app.include_router(chat_route, prefix="/chat")
app.include_router(upload_route, prefix="/uploads")
app.include_router(realtime_route, prefix="/realtime")

@app.get("/")
def root():
    return {"message": "SkillSwap backend is running"}


if __name__ == "__main__":
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
