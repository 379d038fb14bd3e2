import logging
from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Tuple

from sqlalchemy import select, desc

from .db import sesion_transaccional
from .errores import ErrorValidacion, NoEncontradoError, StockInsuficienteError
from .estado_ventas import almacen_ventas
from .ganancias_service import filtrar_por_fecha
from .inventario_service import descontar_stock
from .models import Venta
from .notificaciones_service import Notificacion, construir_mensaje
from .planes import (
    CUOTAS_FLEXIBLE,
    EstadoCuotasFijas,
    a_decimal,
    estado_desde_columnas,
    plan_desde_cuotas,
    redondear,
    sumar,
)

logger = logging.getLogger(__name__)

SEPARADOR_ITEMS = ", "


@dataclass
class ResultadoVenta:
    venta: dict
    rechazos: List[dict] = field(default_factory=list)


def _parse_id(value: Any, campo: str = "id") -> int:
    if isinstance(value, bool):
        raise ErrorValidacion(f"{campo} inválido: {value!r}")
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ErrorValidacion(f"{campo} inválido: {value!r}")


def _parse_fecha_pago(value) -> datetime:
    return value if isinstance(value, datetime) else datetime.fromisoformat(str(value))


def separar_items(items: str) -> List[str]:
    return [i.strip() for i in str(items or "").split(",") if i.strip()]


def precio_compra_display(items: str, precio_compra_total) -> str:
    """Precio de compra para mostrar: "N/A" cuando la venta agrupa varias joyas."""
    cantidad = len(separar_items(items))
    if cantidad == 1 and precio_compra_total is not None:
        return f"${redondear(Decimal(str(precio_compra_total))):.2f}"
    return "N/A"


def venta_to_dict(v: Venta) -> dict:
    estado = estado_desde_columnas(v.cuotas, v.cuotas_restantes, v.saldo_restante)
    historial = [redondear(Decimal(str(m))) for m in (v.historial_pagos or [])]
    return {
        "id": v.id,
        "items": v.items,
        "id_joya": v.id_joya,
        "comprador_nombre": v.comprador_nombre,
        "comprador_telefono": v.comprador_telefono or "",
        "precio_venta_total": redondear(Decimal(v.precio_venta_total)),
        "precio_compra_total": redondear(Decimal(v.precio_compra_total)),
        "precio_compra_display": precio_compra_display(v.items, v.precio_compra_total),
        "ganancia": redondear(Decimal(v.precio_venta_total) - Decimal(v.precio_compra_total)),
        "cuotas": v.cuotas,
        "plan": "flexible" if v.cuotas == CUOTAS_FLEXIBLE else "fijo",
        "monto_cuota": redondear(Decimal(v.monto_cuota)) if v.monto_cuota is not None else None,
        "cuotas_restantes": v.cuotas_restantes,
        "saldo_restante": redondear(Decimal(v.saldo_restante)) if v.saldo_restante is not None else None,
        "fechas_pago": [_parse_fecha_pago(f) for f in (v.fechas_pago or [])],
        "historial_pagos": historial,
        "total_pagado": sumar(historial),
        "fecha_venta": v.fecha_venta,
        "completa": estado.completa,
    }


def _get_venta(session, venta_id: int, bloquear: bool = False) -> Venta:
    stmt = select(Venta).where(Venta.id == venta_id)
    if bloquear:
        stmt = stmt.with_for_update()
    venta = session.execute(stmt).scalar_one_or_none()
    if venta is None:
        raise NoEncontradoError(f"No existe la venta {venta_id}")
    return venta


def crear_venta(
    joya_ids: Iterable[Any],
    comprador_nombre: str = "",
    comprador_telefono: str = "",
    cuotas: Any = 1,
    fecha: Optional[datetime] = None,
) -> ResultadoVenta:
    """
    Registra la venta de una o más joyas y descuenta una unidad de cada una.

    Las joyas sin stock (o inexistentes) se rechazan una por una y se
    devuelven en `rechazos`; la venta sigue con el resto. Si no queda
    ninguna, no se guarda nada. Venta y descuentos van en una sola
    transacción.
    """
    if not isinstance(joya_ids, (list, tuple, set)) or not joya_ids:
        raise ErrorValidacion("La venta debe incluir al menos una joya")
    ids = [_parse_id(j, "joya_id") for j in joya_ids]
    if not ids:
        raise ErrorValidacion("La venta debe incluir al menos una joya")
    plan = plan_desde_cuotas(cuotas)
    nombre = str(comprador_nombre or "").strip() or "Desconocido"
    telefono = str(comprador_telefono or "").strip()
    fecha = fecha or datetime.now()

    with sesion_transaccional() as session:
        vendidas = []
        rechazos: List[dict] = []
        for joya_id in ids:
            try:
                joya = descontar_stock(session, joya_id)
            except StockInsuficienteError as e:
                logger.error(f"Venta: {e.mensaje} (joya {joya_id}), se omite")
                rechazos.extend(e.rechazos)
                continue
            except NoEncontradoError as e:
                logger.error(f"Venta: {e.mensaje}, se omite")
                rechazos.append({"joya_id": joya_id, "nombre": None, "motivo": "NO_ENCONTRADA"})
                continue
            vendidas.append({
                "id": joya.id,
                "nombre": joya.nombre,
                "precio_venta": Decimal(joya.precio_venta or 0),
                "precio_compra": Decimal(joya.precio_compra or 0),
            })

        if not vendidas:
            if all(r["motivo"] == "NO_ENCONTRADA" for r in rechazos):
                raise NoEncontradoError("Ninguna de las joyas existe")
            raise StockInsuficienteError("Ninguna de las joyas tiene stock disponible", rechazos=rechazos)

        total_venta = sumar(j["precio_venta"] for j in vendidas)
        total_compra = sumar(j["precio_compra"] for j in vendidas)
        estado = plan.estado_inicial(total_venta)
        fijo = isinstance(estado, EstadoCuotasFijas)

        venta = Venta(
            items=SEPARADOR_ITEMS.join(j["nombre"] for j in vendidas),
            id_joya=vendidas[0]["id"] if len(vendidas) == 1 else None,
            comprador_nombre=nombre,
            comprador_telefono=telefono,
            precio_venta_total=total_venta,
            precio_compra_total=total_compra,
            cuotas=plan.valor_persistido,
            monto_cuota=plan.monto_cuota(total_venta),
            cuotas_restantes=estado.restantes if fijo else None,
            saldo_restante=None if fijo else estado.saldo_restante,
            fechas_pago=[],
            historial_pagos=[],
            fecha_venta=fecha,
        )
        session.add(venta)
        session.flush()

    data = venta_to_dict(venta)
    almacen_ventas.guardar(data)
    plan_txt = f"{plan.valor_persistido} cuotas" if fijo else "flexible"
    logger.info(f"Venta {data['id']} registrada: {data['items']} por {data['precio_venta_total']} ({plan_txt})")
    return ResultadoVenta(venta=data, rechazos=rechazos)


def registrar_pago(venta_id: Any, monto: Any = None, fecha: Optional[datetime] = None) -> Tuple[dict, Notificacion]:
    """
    Registra un pago y devuelve la venta actualizada con su aviso de WhatsApp.

    Cuotas fijas: se cobra monto_cuota (monto se ignora); se rechaza si no
    quedan cuotas. Flexible: monto obligatorio y > 0; el saldo no baja de 0.
    Historial, fechas y saldo se escriben en un único commit.
    """
    venta_id = _parse_id(venta_id)
    fecha = fecha or datetime.now()

    with sesion_transaccional() as session:
        venta = _get_venta(session, venta_id, bloquear=True)
        estado = estado_desde_columnas(venta.cuotas, venta.cuotas_restantes, venta.saldo_restante)

        if isinstance(estado, EstadoCuotasFijas):
            nuevo = estado.aplicar_pago()
            importe = redondear(Decimal(venta.monto_cuota or 0))
            cuotas_restantes, saldo_restante = nuevo.restantes, None
        else:
            importe = a_decimal(monto, "monto")
            if importe <= 0:
                raise ErrorValidacion("El monto del pago debe ser mayor a cero")
            nuevo = estado.aplicar_pago(importe)
            cuotas_restantes, saldo_restante = None, nuevo.saldo_restante

        venta.cuotas_restantes = cuotas_restantes
        venta.saldo_restante = saldo_restante
        venta.historial_pagos = list(venta.historial_pagos or []) + [str(importe)]
        venta.fechas_pago = list(venta.fechas_pago or []) + [fecha.isoformat()]

    data = venta_to_dict(venta)
    almacen_ventas.guardar(data)
    notificacion = construir_mensaje(data, nuevo)
    logger.info(f"Pago de {importe} registrado en venta {venta_id} (completa: {nuevo.completa})")
    return data, notificacion


def eliminar_venta(venta_id: Any) -> None:
    """Borra la venta definitivamente. El stock descontado no se repone."""
    venta_id = _parse_id(venta_id)
    with sesion_transaccional() as session:
        venta = _get_venta(session, venta_id)
        session.delete(venta)
    almacen_ventas.quitar(venta_id)
    logger.info(f"Venta {venta_id} eliminada")


def editar_comprador(venta_id: Any, nuevo_nombre: str) -> dict:
    venta_id = _parse_id(venta_id)
    nombre = str(nuevo_nombre or "").strip()
    if not nombre:
        raise ErrorValidacion("Falta el campo requerido: comprador_nombre")
    with sesion_transaccional() as session:
        venta = _get_venta(session, venta_id)
        venta.comprador_nombre = nombre
    data = venta_to_dict(venta)
    almacen_ventas.guardar(data)
    return data


def obtener_venta(venta_id: Any) -> dict:
    venta_id = _parse_id(venta_id)
    with sesion_transaccional() as session:
        return venta_to_dict(_get_venta(session, venta_id))


def listar_ventas(desde: Optional[date] = None, hasta: Optional[date] = None) -> List[dict]:
    """Carga las ventas de la base (más nuevas primero) y refresca el estado compartido."""
    with sesion_transaccional() as session:
        rows = session.execute(select(Venta).order_by(desc(Venta.fecha_venta), desc(Venta.id))).scalars().all()
        ventas = [venta_to_dict(v) for v in rows]
    almacen_ventas.reemplazar(ventas)
    if desde or hasta:
        return filtrar_por_fecha(ventas, desde, hasta)
    return ventas
