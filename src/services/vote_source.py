"""
Fuente de votos: la hoja de cálculo de Google donde el formulario guarda las respuestas.

La primera columna tiene la marca temporal de cada respuesta (la fila 1 es el
encabezado). El cliente de la API se construye una sola vez por proceso y se
reutiliza: después de construido sólo guarda credenciales.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..config import Settings, get_settings
from ..errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]
TOKEN_URI = "https://oauth2.googleapis.com/token"

# Formatos de Google Forms según la configuración regional de la hoja
TIMESTAMP_FORMATS = [
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
]

_sheets_service = None


def _get_sheets_service(settings: Settings):
    """Construye el cliente de Sheets en el primer uso y lo reutiliza."""
    global _sheets_service
    if _sheets_service is not None:
        return _sheets_service

    if not settings.google_client_email or not settings.google_private_key:
        raise ConfigurationError("GOOGLE_CLIENT_EMAIL / GOOGLE_PRIVATE_KEY no configuradas")

    info = {
        "type": "service_account",
        "project_id": settings.google_project_id,
        "client_email": settings.google_client_email,
        "private_key": settings.google_private_key,
        "token_uri": TOKEN_URI,
    }
    try:
        credentials = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
    except ValueError as e:
        raise ConfigurationError(f"Credenciales de Google inválidas: {e}") from e

    _sheets_service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
    logger.info(f"Cliente de Google Sheets inicializado para {settings.google_client_email}")
    return _sheets_service


def parse_sheet_timestamp(value: str, utc_offset_hours: float = 0.0) -> Optional[int]:
    """
    Convierte una marca temporal local de la hoja a segundos unix (UTC).
    Retorna None si el valor no tiene un formato conocido.
    """
    if not value:
        return None
    text = str(value).strip()
    tz = timezone(timedelta(hours=utc_offset_hours))
    for fmt in TIMESTAMP_FORMATS:
        try:
            local = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return int(local.replace(tzinfo=tz).timestamp())
    return None


class GoogleSheetsVoteSource:
    """Adaptador de sólo lectura sobre la hoja de respuestas."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def _fetch_rows(self) -> List[list]:
        spreadsheet_id = self.settings.google_spreadsheet_id
        if not spreadsheet_id:
            raise ConfigurationError("GOOGLE_SPREADSHEET_ID no está configurada")

        service = _get_sheets_service(self.settings)
        try:
            response = (
                service.spreadsheets()
                .values()
                .get(spreadsheetId=spreadsheet_id, range=self.settings.google_sheet_range)
                .execute()
            )
        except (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError) as e:
            logger.error(f"Error al leer la hoja de votos: {e}", exc_info=True)
            raise UpstreamError("No se pudo consultar la hoja de votos") from e

        return response.get("values", [])

    def count(self) -> int:
        rows = self._fetch_rows()
        # La primera fila es el encabezado
        return max(len(rows) - 1, 0)

    def timestamps(self) -> List[int]:
        rows = self._fetch_rows()
        offset = self.settings.sheet_utc_offset_hours
        result = []
        skipped = 0
        for row in rows[1:]:
            parsed = parse_sheet_timestamp(row[0], offset) if row else None
            if parsed is None:
                skipped += 1
                continue
            result.append(parsed)
        if skipped:
            logger.debug(f"{skipped} filas sin marca temporal válida ignoradas")
        result.sort()
        return result


def get_vote_source() -> GoogleSheetsVoteSource:
    """Dependencia de FastAPI (los tests la reemplazan por una fuente falsa)."""
    return GoogleSheetsVoteSource(get_settings())
