import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update, asc

from .blob_store import get_blob_store
from .db import sesion_transaccional
from .errores import ErrorValidacion, NoEncontradoError, StockInsuficienteError, ErrorPersistencia
from .models import Joya
from .planes import a_decimal_no_negativo

logger = logging.getLogger(__name__)

CAMPOS_EDITABLES = ("nombre", "tipo", "precio_compra", "precio_venta", "cantidad", "imagen")


def _parse_cantidad(value) -> int:
    if isinstance(value, bool):
        raise ErrorValidacion("Cantidad inválida")
    try:
        if isinstance(value, str):
            value = value.strip()
        cantidad = int(value)
    except (TypeError, ValueError):
        raise ErrorValidacion("Cantidad inválida")
    if isinstance(value, float) and value != cantidad:
        raise ErrorValidacion("Cantidad inválida")
    if cantidad < 0:
        raise ErrorValidacion("La cantidad no puede ser negativa")
    return cantidad


def _normalizar_joya(data: dict, parcial: bool = False) -> dict:
    """
    Valida y normaliza los datos de una joya. Con parcial=True solo se
    validan los campos presentes (edición).
    """
    if not isinstance(data, dict):
        raise ErrorValidacion("Datos de joya inválidos")

    out = {}
    if not parcial or "nombre" in data:
        nombre = str(data.get("nombre") or "").strip()
        if not nombre:
            raise ErrorValidacion("Falta el campo requerido: nombre")
        out["nombre"] = nombre
    if not parcial or "tipo" in data:
        out["tipo"] = str(data.get("tipo") or "").strip() or "Sin tipo"
    for campo in ("precio_compra", "precio_venta"):
        if not parcial or campo in data:
            out[campo] = a_decimal_no_negativo(data.get(campo, 0), campo)
    if not parcial or "cantidad" in data:
        out["cantidad"] = _parse_cantidad(data.get("cantidad", 0))
    if "imagen" in data:
        out["imagen"] = str(data.get("imagen") or "").strip() or None
    return out


def joya_to_dict(j: Joya) -> dict:
    precio_compra = Decimal(j.precio_compra or 0)
    precio_venta = Decimal(j.precio_venta or 0)
    return {
        "id": j.id,
        "nombre": j.nombre,
        "tipo": j.tipo or "Sin tipo",
        "precio_compra": precio_compra,
        "precio_venta": precio_venta,
        "ganancia": precio_venta - precio_compra,
        "cantidad": int(j.cantidad or 0),
        "imagen": j.imagen,
    }


def _get_joya(session, joya_id: int) -> Joya:
    joya = session.get(Joya, joya_id)
    if joya is None:
        raise NoEncontradoError(f"No existe la joya {joya_id}")
    return joya


def listar_joyas() -> List[Joya]:
    with sesion_transaccional() as session:
        return list(session.execute(select(Joya).order_by(asc(Joya.nombre), asc(Joya.id))).scalars())


def obtener_joya(joya_id: int) -> Joya:
    with sesion_transaccional() as session:
        return _get_joya(session, joya_id)


def crear_joya(data: dict) -> Joya:
    valores = _normalizar_joya(data)
    with sesion_transaccional() as session:
        joya = Joya(**valores)
        session.add(joya)
        session.flush()
        logger.info(f"Joya creada: {joya.id} {joya.nombre} (cantidad {joya.cantidad})")
        return joya


def actualizar_joya(joya_id: int, data: dict) -> Joya:
    valores = _normalizar_joya(data, parcial=True)
    with sesion_transaccional() as session:
        joya = _get_joya(session, joya_id)
        for campo, valor in valores.items():
            if campo in CAMPOS_EDITABLES:
                setattr(joya, campo, valor)
        return joya


def eliminar_joya(joya_id: int) -> None:
    """Elimina la joya y su imagen. Las ventas ya registradas no se tocan."""
    with sesion_transaccional() as session:
        joya = _get_joya(session, joya_id)
        imagen = joya.imagen
        session.delete(joya)
    if imagen:
        try:
            get_blob_store().eliminar(imagen)
        except ErrorPersistencia as e:
            logger.error(f"No se pudo eliminar la imagen de la joya {joya_id}: {e}")
    logger.info(f"Joya eliminada: {joya_id}")


def subir_imagen(joya_id: int, nombre_archivo: str, contenido: bytes) -> Joya:
    """Guarda la imagen en el blob store y la asocia a la joya, reemplazando la anterior."""
    store = get_blob_store()
    url = store.guardar(nombre_archivo, contenido)
    try:
        with sesion_transaccional() as session:
            joya = _get_joya(session, joya_id)
            anterior = joya.imagen
            joya.imagen = url
    except Exception:
        # Compensar: la imagen nueva quedó huérfana
        store.eliminar(url)
        raise
    if anterior:
        try:
            store.eliminar(anterior)
        except ErrorPersistencia as e:
            logger.error(f"No se pudo eliminar la imagen anterior de la joya {joya_id}: {e}")
    return joya


def descontar_stock(session, joya_id: int, cantidad: int = 1) -> Joya:
    """Descuenta stock con un UPDATE condicional (cantidad >= n).

    Dos ventas simultáneas de la última unidad no pueden dejar la cantidad
    en negativo: la segunda no actualiza ninguna fila y se rechaza.
    Corre dentro de la transacción del llamador.
    """
    if isinstance(cantidad, bool) or not isinstance(cantidad, int) or cantidad < 1:
        raise ErrorValidacion("La cantidad a descontar debe ser un entero positivo")

    res = session.execute(
        update(Joya)
        .where(Joya.id == joya_id, Joya.cantidad >= cantidad)
        .values(cantidad=Joya.cantidad - cantidad)
        .execution_options(synchronize_session=False)
    )
    joya = session.get(Joya, joya_id, populate_existing=True)
    if res.rowcount == 0:
        if joya is None:
            raise NoEncontradoError(f"No existe la joya {joya_id}")
        raise StockInsuficienteError(
            f"Stock insuficiente para {joya.nombre}",
            rechazos=[{
                "joya_id": joya.id,
                "nombre": joya.nombre,
                "motivo": "STOCK_INSUFICIENTE",
                "cantidad": int(joya.cantidad or 0),
            }],
        )
    return joya
