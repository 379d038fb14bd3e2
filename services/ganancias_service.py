"""
Reporte de ganancias.

Hay dos criterios y ambos se informan, cada uno con su nombre:

  - por_pagos: cada pago cuenta en el mes en que se cobró (no en el de la
    venta). La cantidad de "ventas" de un mes es la cantidad de pagos.
  - ganancia_mes_actual_por_venta: precio de venta - precio de compra de las
    ventas creadas en el mes en curso.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from .errores import ErrorValidacion
from .planes import CERO, redondear

logger = logging.getLogger(__name__)


@dataclass
class BucketGanancia:
    periodo: str
    ganancia_total: Decimal = CERO
    ventas: int = 0

    def to_dict(self) -> dict:
        return {"periodo": self.periodo, "ganancia_total": self.ganancia_total, "ventas": self.ventas}


def periodo_de(fecha) -> str:
    return f"{fecha.year:04d}-{fecha.month:02d}"


def _a_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value))


def _a_fecha(value: Any, campo: str) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).strip()[:10]).date()
    except ValueError:
        raise ErrorValidacion(f"{campo} inválida (use YYYY-MM-DD)")


def agregar_mensual(ventas: Iterable[dict]) -> Dict[str, BucketGanancia]:
    buckets: Dict[str, BucketGanancia] = {}
    for venta in ventas:
        fechas = venta.get("fechas_pago") or []
        montos = venta.get("historial_pagos") or []
        if len(fechas) != len(montos):
            logger.warning(
                f"Venta {venta.get('id')}: {len(fechas)} fechas de pago y {len(montos)} montos, "
                f"se usan los pares completos"
            )
        for fecha, monto in zip(fechas, montos):
            periodo = periodo_de(_a_datetime(fecha))
            bucket = buckets.setdefault(periodo, BucketGanancia(periodo=periodo))
            bucket.ganancia_total = redondear(bucket.ganancia_total + Decimal(str(monto)))
            bucket.ventas += 1
    return buckets


def ganancia_mes_actual(ventas: Iterable[dict], hoy: Optional[date] = None) -> Decimal:
    hoy = hoy or date.today()
    total = CERO
    for venta in ventas:
        fecha = _a_datetime(venta["fecha_venta"])
        if (fecha.year, fecha.month) != (hoy.year, hoy.month):
            continue
        total += Decimal(str(venta.get("precio_venta_total") or 0)) - Decimal(str(venta.get("precio_compra_total") or 0))
    return redondear(total)


def filtrar_por_fecha(ventas: Iterable[dict], desde: Any = None, hasta: Any = None) -> List[dict]:
    """Filtra por fecha de venta, con ambos extremos inclusive."""
    d = _a_fecha(desde, "desde")
    h = _a_fecha(hasta, "hasta")
    if d and h and d > h:
        raise ErrorValidacion("La fecha 'desde' es posterior a 'hasta'")
    out = []
    for venta in ventas:
        f = _a_datetime(venta["fecha_venta"]).date()
        if d and f < d:
            continue
        if h and f > h:
            continue
        out.append(venta)
    return out


def detalle_venta(venta: dict) -> dict:
    precio_venta = Decimal(str(venta.get("precio_venta_total") or 0))
    precio_compra = Decimal(str(venta.get("precio_compra_total") or 0))
    return {
        "id": venta.get("id"),
        "items": venta.get("items"),
        "comprador_nombre": venta.get("comprador_nombre"),
        "precio_compra_total": redondear(precio_compra),
        "precio_venta_total": redondear(precio_venta),
        "ganancia": redondear(precio_venta - precio_compra),
        "fecha_venta": venta.get("fecha_venta"),
    }


def reporte_ganancias(
    ventas: Iterable[dict],
    hoy: Optional[date] = None,
    desde: Any = None,
    hasta: Any = None,
) -> dict:
    """
    Totales sobre todas las ventas. desde/hasta solo recortan `detalle`
    (la ganancia de cada venta).
    """
    ventas = list(ventas)
    hoy = hoy or date.today()
    filtradas = filtrar_por_fecha(ventas, desde, hasta)
    buckets = agregar_mensual(ventas)
    por_pagos = [buckets[k].to_dict() for k in sorted(buckets)]
    return {
        "por_pagos": por_pagos,
        "total_cobrado": redondear(sum((b.ganancia_total for b in buckets.values()), CERO)),
        "mes_actual": periodo_de(hoy),
        "ganancia_mes_actual_por_venta": ganancia_mes_actual(ventas, hoy),
        "detalle": [detalle_venta(v) for v in filtradas],
    }
