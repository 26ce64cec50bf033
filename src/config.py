import os
import logging

logger = logging.getLogger(__name__)

# Intervalo mínimo entre snapshots de votos (para el gráfico)
SNAPSHOT_INTERVAL_SECONDS = 10 * 60

# La cookie de identidad vive un año
COOKIE_MAX_AGE_SECONDS = 60 * 60 * 24 * 365


class Settings:
    """Configuración de la aplicación que lee variables de entorno dinámicamente."""

    @property
    def app_name(self) -> str:
        return "Signature Slots Backend"

    @property
    def environment(self) -> str:
        # Detectar producción por variables de Railway o ENV
        env = os.getenv("ENV", "").lower()
        railway_env = os.getenv("RAILWAY_ENVIRONMENT", "").lower()
        # Si está en Railway (tiene PORT) o ENV=production, es producción
        if env == "production" or railway_env == "production" or os.getenv("PORT"):
            return "production"
        return "development"

    @property
    def cors_origin(self) -> str:
        return os.getenv("CORS_ORIGIN", "http://localhost:3000")

    @property
    def votes_per_roll(self) -> int:
        raw = os.getenv("VOTES_PER_ROLL", "1")
        try:
            value = int(raw)
        except ValueError:
            logger.warning(f"VOTES_PER_ROLL inválido ({raw!r}), usando 1")
            return 1
        if value <= 0:
            logger.warning(f"VOTES_PER_ROLL debe ser positivo (recibido {value}), usando 1")
            return 1
        return value

    @property
    def total_votes_needed(self) -> int:
        try:
            return int(os.getenv("TOTAL_VOTES_NEEDED", "159"))
        except ValueError:
            return 159

    @property
    def sign_url(self) -> str | None:
        return os.getenv("SIGN_URL") or None

    @property
    def cookie_name(self) -> str:
        return os.getenv("ROLL_COOKIE_NAME", "slot_user_token")

    @property
    def google_project_id(self) -> str:
        return os.getenv("GOOGLE_PROJECT_ID", "")

    @property
    def google_client_email(self) -> str:
        return os.getenv("GOOGLE_CLIENT_EMAIL", "")

    @property
    def google_private_key(self) -> str:
        # Railway/Vercel guardan la clave con "\n" literales
        return os.getenv("GOOGLE_PRIVATE_KEY", "").replace("\\n", "\n")

    @property
    def google_spreadsheet_id(self) -> str:
        return os.getenv("GOOGLE_SPREADSHEET_ID", "")

    @property
    def google_sheet_range(self) -> str:
        return os.getenv("GOOGLE_SHEET_RANGE", "A:A")

    @property
    def sheet_utc_offset_hours(self) -> float:
        raw = os.getenv("SHEET_UTC_OFFSET_HOURS", "0")
        try:
            return float(raw)
        except ValueError:
            logger.warning(f"SHEET_UTC_OFFSET_HOURS inválido ({raw!r}), usando 0")
            return 0.0


# Instancia singleton de Settings (sin cache, lee valores dinámicamente)
_settings_instance = None


def get_settings() -> Settings:
    """Retorna la instancia de Settings. Lee variables de entorno dinámicamente."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def clear_settings_cache():
    """Limpia la instancia de settings (aunque no es necesario con propiedades dinámicas)."""
    global _settings_instance
    _settings_instance = None
