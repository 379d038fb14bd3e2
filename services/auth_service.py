import hmac
import logging
from typing import Dict, Optional

from flask_login import UserMixin

from config import AUTH_CONFIG

logger = logging.getLogger(__name__)


class Usuario(UserMixin):
    def __init__(self, email: str):
        self.id = email
        self.email = email


class ProveedorIdentidad:
    """Valida email + contraseña contra los usuarios configurados.

    Para el resto de la app "autenticado" es solo un sí o un no: no hay roles.
    """

    def __init__(self, usuarios: Optional[Dict[str, str]] = None):
        base = AUTH_CONFIG["USUARIOS"] if usuarios is None else usuarios
        self.usuarios = {str(k).strip().lower(): str(v) for k, v in base.items()}

    def autenticar(self, email: str, password: str) -> bool:
        email = (email or "").strip().lower()
        esperado = self.usuarios.get(email)
        if esperado is None or not password:
            logger.warning(f"Intento de login fallido para {email or '(vacío)'}")
            return False
        ok = hmac.compare_digest(esperado.encode("utf-8"), str(password).encode("utf-8"))
        if not ok:
            logger.warning(f"Intento de login fallido para {email}")
        return ok

    def existe(self, email: str) -> bool:
        return (email or "").strip().lower() in self.usuarios

    def cargar_usuario(self, email: str) -> Optional[Usuario]:
        email = (email or "").strip().lower()
        return Usuario(email) if self.existe(email) else None
