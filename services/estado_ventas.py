"""
Estado compartido de ventas.

Todas las vistas que leen ventas (listado, pagos, ganancias) consultan el
mismo snapshot en memoria. El motor de ventas lo actualiza después de cada
commit y los suscriptores reciben el snapshot nuevo.
"""
import logging
from threading import RLock
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Suscriptor = Callable[[List[dict]], None]


class AlmacenVentas:
    def __init__(self):
        self._ventas: Dict[int, dict] = {}
        self._lock = RLock()
        self._suscriptores: List[Suscriptor] = []

    def snapshot(self) -> List[dict]:
        """Copia de las ventas, más nuevas primero."""
        with self._lock:
            ventas = [dict(v) for v in self._ventas.values()]
        ventas.sort(key=lambda v: (v.get("fecha_venta"), v.get("id") or 0), reverse=True)
        return ventas

    def obtener(self, venta_id: int) -> Optional[dict]:
        with self._lock:
            v = self._ventas.get(venta_id)
            return dict(v) if v is not None else None

    def reemplazar(self, ventas: List[dict]):
        with self._lock:
            self._ventas = {v["id"]: dict(v) for v in ventas}
        self._notificar()

    def guardar(self, venta: dict):
        with self._lock:
            self._ventas[venta["id"]] = dict(venta)
        self._notificar()

    def quitar(self, venta_id: int):
        with self._lock:
            self._ventas.pop(venta_id, None)
        self._notificar()

    def limpiar(self):
        with self._lock:
            self._ventas.clear()
            self._suscriptores.clear()

    def suscribir(self, callback: Suscriptor) -> Callable[[], None]:
        """Registra un suscriptor y devuelve la función para cancelarlo."""
        with self._lock:
            self._suscriptores.append(callback)

        def cancelar():
            with self._lock:
                if callback in self._suscriptores:
                    self._suscriptores.remove(callback)

        return cancelar

    def _notificar(self):
        with self._lock:
            suscriptores = list(self._suscriptores)
        if not suscriptores:
            return
        snap = self.snapshot()
        for cb in suscriptores:
            try:
                cb(snap)
            except Exception as e:
                logger.error(f"Error en suscriptor de ventas {cb!r}: {e}")


almacen_ventas = AlmacenVentas()
