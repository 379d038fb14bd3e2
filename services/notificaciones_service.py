"""
Mensajes de estado de pago para enviar por WhatsApp.

El servicio no envía nada: arma el texto y el link wa.me que abre el
cliente de mensajería del usuario.
"""
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from urllib.parse import quote

from config import NOTIFICACIONES_CONFIG
from .planes import (
    CUOTAS_FLEXIBLE,
    Estado,
    EstadoCuotasFijas,
    EstadoFlexible,
    estado_desde_columnas,
    redondear,
    sumar,
)

PLANTILLA_CUOTAS = "cuotas_pendientes"
PLANTILLA_COMPLETA = "pago_completo"
PLANTILLA_FLEXIBLE = "pago_flexible"

_NO_DIGITOS = re.compile(r"\D")


@dataclass(frozen=True)
class Notificacion:
    telefono: str
    mensaje: str
    url: str
    plantilla: str

    def to_dict(self) -> dict:
        return {"telefono": self.telefono, "mensaje": self.mensaje, "url": self.url, "plantilla": self.plantilla}


def normalizar_telefono(raw: str) -> str:
    """Deja solo dígitos, quita el prefijo 549 (o 54) y antepone 549 una sola vez."""
    limpio = _NO_DIGITOS.sub("", str(raw or ""))
    # Primero el prefijo más largo para no recortar de más
    if limpio.startswith("549"):
        limpio = limpio[3:]
    elif limpio.startswith("54"):
        limpio = limpio[2:]
    return f"549{limpio}"


def _fmt(monto) -> str:
    return f"${redondear(Decimal(str(monto or 0))):.2f}"


def _mensaje_cuotas(nombre, items, tienda, estado: EstadoCuotasFijas, cuotas, monto_cuota, total) -> str:
    pagadas = cuotas - estado.restantes
    total_pagado = redondear(monto_cuota * pagadas)
    faltante = redondear(total - total_pagado)
    cuota_word = "cuota" if estado.restantes == 1 else "cuotas"
    pago_word = "una cuota" if pagadas == 1 else f"{pagadas} cuotas"
    return (
        f"Hola {nombre}, somos {tienda}.\n\n"
        f"Queremos agradecerte por tu compra de \"{items}\".\n\n"
        f"Has pagado {pago_word} de {_fmt(monto_cuota)} cada una. "
        f"El valor total de tu compra es de {_fmt(total)}.\n\n"
        f"Hasta el momento, has abonado {_fmt(total_pagado)}, y te faltan {_fmt(faltante)} para completar el pago.\n\n"
        f"Te quedan {estado.restantes} {cuota_word} por pagar. Si tienes alguna duda, no dudes en contactarnos. "
        f"¡Gracias por confiar en nosotros!"
    )


def _mensaje_completo(nombre, items, tienda, total) -> str:
    return (
        f"Hola {nombre}, somos {tienda}.\n\n"
        f"¡Felicidades! Has completado el pago total de tu compra de \"{items}\". Valor total: {_fmt(total)}.\n\n"
        f"Gracias por confiar en nosotros. Si necesitas más información o asistencia, no dudes en contactarnos. "
        f"¡Esperamos verte pronto!"
    )


def _mensaje_flexible(nombre, items, tienda, estado: EstadoFlexible, ultimo_pago, pagado, total) -> str:
    return (
        f"Hola {nombre}, somos {tienda}.\n\n"
        f"Registramos tu pago de {_fmt(ultimo_pago)} por tu compra de \"{items}\".\n\n"
        f"Hasta el momento, has abonado {_fmt(pagado)} de un total de {_fmt(total)}, "
        f"y te faltan {_fmt(estado.saldo_restante)} para completar el pago.\n\n"
        f"Si tienes alguna duda, no dudes en contactarnos. ¡Gracias por confiar en nosotros!"
    )


def construir_mensaje(venta: dict, estado: Optional[Estado] = None) -> Notificacion:
    """Arma el aviso de pago de una venta (dict de venta_to_dict).

    estado es el estado de pago ya actualizado; si no viene se toma de la venta.
    """
    if estado is None:
        estado = estado_desde_columnas(
            venta.get("cuotas"), venta.get("cuotas_restantes"), venta.get("saldo_restante")
        )

    tienda = NOTIFICACIONES_CONFIG["NOMBRE_TIENDA"]
    nombre = venta.get("comprador_nombre") or "Desconocido"
    items = venta.get("items") or ""
    total = redondear(Decimal(str(venta.get("precio_venta_total") or 0)))
    historial = venta.get("historial_pagos") or []

    if estado.completa:
        plantilla = PLANTILLA_COMPLETA
        mensaje = _mensaje_completo(nombre, items, tienda, total)
    elif isinstance(estado, EstadoCuotasFijas) and venta.get("cuotas") != CUOTAS_FLEXIBLE:
        plantilla = PLANTILLA_CUOTAS
        monto_cuota = redondear(Decimal(str(venta.get("monto_cuota") or 0)))
        mensaje = _mensaje_cuotas(nombre, items, tienda, estado, int(venta.get("cuotas") or 0), monto_cuota, total)
    else:
        plantilla = PLANTILLA_FLEXIBLE
        ultimo = historial[-1] if historial else 0
        mensaje = _mensaje_flexible(nombre, items, tienda, estado, ultimo, sumar(historial), total)

    telefono = normalizar_telefono(venta.get("comprador_telefono") or "")
    url = NOTIFICACIONES_CONFIG["URL_TEMPLATE"].format(
        telefono=telefono,
        mensaje=quote(mensaje, safe="-_.!~*'()"),
    )
    return Notificacion(telefono=telefono, mensaje=mensaje, url=url, plantilla=plantilla)
