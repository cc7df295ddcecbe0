import logging

from fastapi import FastAPI

from gamehub.api.endpoints import auth as auth_endpoints
from gamehub.api.endpoints import games as game_endpoints
from gamehub.api.endpoints import notifications as notification_endpoints
from gamehub.api.endpoints import tournaments as tournament_endpoints
from gamehub.api.endpoints import users as user_endpoints
from gamehub.core.errors import GameHubError, gamehub_error_handler
from gamehub.core.log_config import configure_logging

# Importing the models package creates the tables
import gamehub.models # noqa: F401

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="GameHub API")

app.add_exception_handler(GameHubError, gamehub_error_handler)

app.include_router(auth_endpoints.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(user_endpoints.router, prefix="/api/users", tags=["Users"])
app.include_router(tournament_endpoints.router, prefix="/api/tournaments", tags=["Tournaments"])
app.include_router(game_endpoints.router, prefix="/api/games", tags=["Games"])
app.include_router(notification_endpoints.router, prefix="/api/notifications", tags=["Notifications"])


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("gamehub.main:app", host="0.0.0.0", port=8000)
