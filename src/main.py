import os
import logging
from pathlib import Path
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from .routers import votes, rolls
from .config import get_settings, clear_settings_cache
from .database import Base, engine
from .errors import AppError, UpstreamError

# Configurar logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Cargar variables de entorno desde .env (solo en desarrollo local)
backend_dir = Path(__file__).parent.parent
env_path = backend_dir / ".env"
loaded = load_dotenv(dotenv_path=env_path)
if loaded:
    logger.info(f"Variables de entorno cargadas desde: {env_path}")
else:
    logger.warning(f"No se pudo cargar archivo .env desde: {env_path}")

# Limpiar cache de settings para asegurar que se recarguen las variables
clear_settings_cache()

# Importar todos los modelos para que SQLAlchemy los registre antes de create_all()
from .models.visitor import Visitor, VisitorSession  # noqa: F401,E402
from .models.vote_snapshot import VoteSnapshot  # noqa: F401,E402

app_settings = get_settings()
logger.info(f"🔧 Entorno: {app_settings.environment}, votos por tirada: {app_settings.votes_per_roll}")

app = FastAPI(title="Signature Slots Backend", version="0.1.0", redirect_slashes=False)

# Configurar CORS
# La cookie de identidad viaja con credenciales, así que los orígenes tienen que ser explícitos
allowed_origins = [
    "http://localhost:3000",
    "http://localhost:3001",
]

cors_origin_env = os.getenv("CORS_ORIGIN", "")
cors_origin_configured = cors_origin_env and cors_origin_env != "http://localhost:3000"

if cors_origin_configured:
    # Permitir múltiples orígenes separados por coma
    cors_origins = [origin.strip() for origin in cors_origin_env.split(",")]
    for origin in cors_origins:
        if origin and origin not in allowed_origins:
            allowed_origins.append(origin)

if app_settings.environment == "production" and not cors_origin_configured:
    logger.warning("⚠️ CORS_ORIGIN no configurado en producción, el frontend debe servirse desde el mismo dominio")

logger.info(f"🌐 Orígenes CORS permitidos: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "reason": exc.reason},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"❌ Error de base de datos en {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=UpstreamError.status_code,
        content={"detail": "Base de datos no disponible", "reason": UpstreamError.reason},
    )


def create_tables():
    """Crea las tablas en la base de datos si no existen."""
    try:
        logger.info("Creando tablas en la base de datos...")

        expected_tables = list(Base.metadata.tables.keys())
        logger.info(f"Tablas esperadas: {', '.join(expected_tables)}")

        Base.metadata.create_all(bind=engine)

        inspector = inspect(engine)
        existing_tables = inspector.get_table_names()
        logger.info(f"Tablas existentes en la BD: {', '.join(existing_tables) if existing_tables else '(ninguna)'}")

        missing_tables = [t for t in expected_tables if t not in existing_tables]
        if missing_tables:
            logger.warning(f"⚠️  Tablas faltantes: {', '.join(missing_tables)}")
        else:
            logger.info("✅ Todas las tablas fueron creadas/verificadas exitosamente")

    except Exception as e:
        logger.error(f"❌ ERROR al crear tablas: {str(e)}", exc_info=True)
        raise


# Crear tablas al iniciar (no bloquear el inicio si falla)
try:
    create_tables()
except Exception as e:
    logger.error(f"❌ Error al crear tablas al iniciar: {str(e)}", exc_info=True)
    logger.warning("⚠️ El servidor continuará iniciando, pero algunas funcionalidades pueden no estar disponibles")

# Include routers
app.include_router(votes.router, prefix="/api")
app.include_router(rolls.router, prefix="/api")


@app.get("/", tags=["root"])
async def root():
    return {"message": "Signature Slots backend"}


@app.get("/api/health", tags=["health"])
async def health():
    return {"status": "ok"}

