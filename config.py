"""
Configuración centralizada para Las Marias (inventario y ventas en cuotas)
"""
import os
import json
import logging

from dotenv import load_dotenv

# Cargar variables de entorno desde archivo .env
load_dotenv()

logger = logging.getLogger(__name__)


def get_usuarios():
    """Obtiene los usuarios habilitados (email -> contraseña) desde USUARIOS_JSON."""
    raw = os.getenv("USUARIOS_JSON", "").strip()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error(f"USUARIOS_JSON no es un JSON válido: {e}")
        return {}
    if not isinstance(data, dict):
        logger.error("USUARIOS_JSON debe ser un objeto {email: password}")
        return {}
    return {str(k).strip().lower(): str(v) for k, v in data.items()}


# Configuración de la aplicación
APP_CONFIG = {
    "DEBUG": os.getenv("APP_DEBUG", "0") == "1",
    "HOST": os.getenv("APP_HOST", "0.0.0.0"),
    "PORT": int(os.getenv("APP_PORT", "5000")),
    "SECRET_KEY": os.getenv("SECRET_KEY", "las-marias-dev-secret"),
}

# Configuración de base de datos
DATABASE_CONFIG = {
    "URL": os.getenv("DATABASE_URL", "sqlite:///data/joyeria.db").strip(),
    "ECHO": os.getenv("DATABASE_ECHO", "0") == "1",
}

# Configuración de imágenes (blob store local)
BLOB_CONFIG = {
    "DIRECTORIO": os.getenv("BLOB_DIR", "uploads/images"),
    "URL_BASE": os.getenv("BLOB_URL_BASE", "/imagenes"),
}

# Configuración de avisos de pago por WhatsApp
NOTIFICACIONES_CONFIG = {
    "NOMBRE_TIENDA": os.getenv("NOMBRE_TIENDA", "Las Marias"),
    "URL_TEMPLATE": os.getenv("WHATSAPP_URL_TEMPLATE", "https://wa.me/{telefono}?text={mensaje}"),
}

# Configuración de autenticación
AUTH_CONFIG = {
    "USUARIOS": get_usuarios(),
}

# Configuración de logging
LOGGING_CONFIG = {
    "LEVEL": os.getenv("LOG_LEVEL", "INFO"),
    "FORMAT": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
}
