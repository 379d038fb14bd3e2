"""
Modelo de montos y planes de pago.

Una venta se cobra con uno de dos planes:

  - PlanCuotasFijas(n): n cuotas iguales de total / n. El estado es la
    cantidad de cuotas restantes, en [0, n] y nunca crece.
  - PlanFlexible(): el comprador paga montos libres. El estado es el saldo
    restante, max(0, total - pagado). En la base se guarda con cuotas = -1.

Los montos son Decimal redondeados a centavos (ROUND_HALF_UP).
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Iterable, Optional, Union

from .errores import ErrorValidacion, PagoRechazadoError

CUOTAS_FLEXIBLE = -1
CENTAVOS = Decimal("0.01")
CERO = Decimal("0.00")


def redondear(valor: Decimal) -> Decimal:
    return Decimal(valor).quantize(CENTAVOS, rounding=ROUND_HALF_UP)


def a_decimal(value: Any, campo: str = "monto") -> Decimal:
    """Convierte a Decimal validando que sea un número finito."""
    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        raise ErrorValidacion(f"Falta el campo requerido: {campo}")
    try:
        dec = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ErrorValidacion(f"{campo} inválido: {value!r}")
    if not dec.is_finite():
        raise ErrorValidacion(f"{campo} inválido: {value!r}")
    return redondear(dec)


def a_decimal_no_negativo(value: Any, campo: str) -> Decimal:
    dec = a_decimal(value, campo)
    if dec < 0:
        raise ErrorValidacion(f"{campo} no puede ser negativo")
    return dec


def sumar(montos: Iterable[Any]) -> Decimal:
    total = CERO
    for m in montos:
        total += Decimal(str(m))
    return redondear(total)


@dataclass(frozen=True)
class EstadoCuotasFijas:
    restantes: int

    @property
    def completa(self) -> bool:
        return self.restantes == 0

    def aplicar_pago(self) -> "EstadoCuotasFijas":
        if self.completa:
            raise PagoRechazadoError("La venta ya tiene todas las cuotas pagas")
        return EstadoCuotasFijas(restantes=max(0, self.restantes - 1))


@dataclass(frozen=True)
class EstadoFlexible:
    saldo_restante: Decimal

    @property
    def completa(self) -> bool:
        return self.saldo_restante <= 0

    def aplicar_pago(self, monto: Decimal) -> "EstadoFlexible":
        # El excedente de un sobrepago no se registra como crédito
        return EstadoFlexible(saldo_restante=max(CERO, redondear(self.saldo_restante - monto)))


@dataclass(frozen=True)
class PlanCuotasFijas:
    cuotas: int

    def __post_init__(self):
        if isinstance(self.cuotas, bool) or not isinstance(self.cuotas, int) or self.cuotas < 1:
            raise ErrorValidacion(f"Cantidad de cuotas inválida: {self.cuotas!r}")

    @property
    def valor_persistido(self) -> int:
        return self.cuotas

    def monto_cuota(self, total: Decimal) -> Decimal:
        return redondear(Decimal(total) / self.cuotas)

    def estado_inicial(self, total: Decimal) -> EstadoCuotasFijas:
        return EstadoCuotasFijas(restantes=self.cuotas)


@dataclass(frozen=True)
class PlanFlexible:

    @property
    def valor_persistido(self) -> int:
        return CUOTAS_FLEXIBLE

    def monto_cuota(self, total: Decimal) -> Optional[Decimal]:
        return None

    def estado_inicial(self, total: Decimal) -> EstadoFlexible:
        return EstadoFlexible(saldo_restante=redondear(total))


Plan = Union[PlanCuotasFijas, PlanFlexible]
Estado = Union[EstadoCuotasFijas, EstadoFlexible]


def plan_desde_cuotas(valor: Any) -> Plan:
    """Interpreta el valor de cuotas tal como llega del formulario o de la base.

    -1, "-1" o "flexible" -> PlanFlexible; un entero positivo -> PlanCuotasFijas.
    """
    if isinstance(valor, (PlanCuotasFijas, PlanFlexible)):
        return valor
    if isinstance(valor, str):
        texto = valor.strip().lower()
        if texto in ("flexible", "-1"):
            return PlanFlexible()
        try:
            valor = int(texto)
        except ValueError:
            raise ErrorValidacion(f"Cantidad de cuotas inválida: {valor!r}")
    if isinstance(valor, bool) or not isinstance(valor, int):
        raise ErrorValidacion(f"Cantidad de cuotas inválida: {valor!r}")
    if valor == CUOTAS_FLEXIBLE:
        return PlanFlexible()
    return PlanCuotasFijas(cuotas=valor)


def estado_desde_columnas(cuotas: int, cuotas_restantes: Optional[int], saldo_restante: Any) -> Estado:
    """Reconstruye el estado de pago a partir de las columnas de la tabla ventas."""
    if cuotas == CUOTAS_FLEXIBLE:
        return EstadoFlexible(saldo_restante=redondear(Decimal(str(saldo_restante or 0))))
    return EstadoCuotasFijas(restantes=int(cuotas_restantes or 0))
