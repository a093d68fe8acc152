from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api_routers.v1 import api_router
from app.features.auth.models import User  # noqa: F401  registers auth tables on Base.metadata
from app.features.auth.utils.security import PasswordHasher, SessionIssuer
from app.platform.config import Settings, get_settings
from app.platform.db.base import Base
from app.platform.db.session import build_engine, build_sessionmaker
from app.platform.exceptions import add_exception_handlers
from app.platform.logger import get_logger
from app.platform.services.email import Mailer

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application with its collaborators wired explicitly.

    Engine, session factory, password hasher, session issuer and mailer are
    created here and kept on ``app.state``; nothing is a module-level singleton.
    """
    settings = settings or get_settings()
    engine = build_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.CREATE_TABLES_ON_STARTUP:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
        yield
        await engine.dispose()

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Registration, login, email verification and password reset",
        version="1.0.0",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = build_sessionmaker(engine)
    app.state.hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)
    app.state.issuer = SessionIssuer(
        settings.JWT_SECRET_KEY,
        algorithm=settings.ALGORITHM,
        expires_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    )
    app.state.mailer = Mailer(settings)

    # allow requests from the mobile app
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    add_exception_handlers(app)
    app.include_router(api_router)

    return app
