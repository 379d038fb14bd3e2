"""
Almacenamiento de imágenes de joyas en disco local.

guardar() devuelve una URL durable (URL_BASE/<nombre>) y eliminar() recibe
esa misma URL. Cada archivo se guarda con un prefijo uuid para que dos
subidas con el mismo nombre no se pisen.
"""
import logging
import re
import uuid
from pathlib import Path
from typing import Optional

from config import BLOB_CONFIG
from .errores import ErrorPersistencia, ErrorValidacion

logger = logging.getLogger(__name__)

_NOMBRE_INVALIDO = re.compile(r"[^A-Za-z0-9._-]+")


class BlobStoreLocal:
    def __init__(self, directorio: Optional[str] = None, url_base: Optional[str] = None):
        self.directorio = Path(directorio or BLOB_CONFIG["DIRECTORIO"])
        self.url_base = (url_base or BLOB_CONFIG["URL_BASE"]).rstrip("/")

    def _sanear(self, nombre_archivo: str) -> str:
        nombre = Path(str(nombre_archivo or "")).name
        nombre = _NOMBRE_INVALIDO.sub("_", nombre).strip("._")
        return nombre or "imagen"

    def guardar(self, nombre_archivo: str, contenido: bytes) -> str:
        if not contenido:
            raise ErrorValidacion("La imagen está vacía")
        nombre = f"{uuid.uuid4().hex}_{self._sanear(nombre_archivo)}"
        try:
            self.directorio.mkdir(parents=True, exist_ok=True)
            (self.directorio / nombre).write_bytes(contenido)
        except OSError as e:
            raise ErrorPersistencia(f"No se pudo guardar la imagen: {e}") from e
        logger.info(f"Imagen guardada: {nombre}")
        return f"{self.url_base}/{nombre}"

    def ruta(self, url: str) -> Optional[Path]:
        """Ruta en disco de una URL emitida por este store, o None si no es nuestra."""
        prefijo = self.url_base + "/"
        if not url or not url.startswith(prefijo):
            return None
        nombre = url[len(prefijo):]
        if not nombre or "/" in nombre or nombre in (".", ".."):
            return None
        return self.directorio / nombre

    def eliminar(self, url: str) -> bool:
        """Elimina la imagen. Devuelve False si la URL no existe o no es de este store."""
        path = self.ruta(url)
        if path is None or not path.exists():
            logger.warning(f"Imagen no encontrada para eliminar: {url}")
            return False
        try:
            path.unlink()
        except OSError as e:
            raise ErrorPersistencia(f"No se pudo eliminar la imagen: {e}") from e
        logger.info(f"Imagen eliminada: {path.name}")
        return True


# Singleton simple
_blob_store: Optional[BlobStoreLocal] = None


def get_blob_store() -> BlobStoreLocal:
    global _blob_store
    if _blob_store is None:
        _blob_store = BlobStoreLocal()
    return _blob_store


def set_blob_store(store: Optional[BlobStoreLocal]):
    global _blob_store
    _blob_store = store
