"""
Pruebas de registro de pagos: cuotas fijas, pagos flexibles y atomicidad
"""
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from services.errores import ErrorPersistencia, ErrorValidacion, NoEncontradoError, PagoRechazadoError
from services.estado_ventas import almacen_ventas
from services.inventario_service import crear_joya
from services.sales_service import crear_venta, obtener_venta, registrar_pago


@pytest.fixture
def joya_500():
    return crear_joya({"nombre": "Collar de perlas", "precio_compra": 200, "precio_venta": 500, "cantidad": 10})


@pytest.mark.parametrize("cuotas", [1, 2, 3, 6, 12])
def test_cuotas_restantes_bajan_una_por_pago(joya_500, cuotas):
    venta = crear_venta([joya_500.id], "Ana", "", cuotas).venta
    for k in range(1, cuotas + 1):
        venta, _ = registrar_pago(venta["id"])
        assert venta["cuotas_restantes"] == cuotas - k
        assert len(venta["historial_pagos"]) == k

    with pytest.raises(PagoRechazadoError):
        registrar_pago(venta["id"])

    final = obtener_venta(venta["id"])
    assert final["cuotas_restantes"] == 0
    assert len(final["historial_pagos"]) == cuotas


def test_cuota_fija_ignora_el_monto(joya_500):
    venta = crear_venta([joya_500.id], "Ana", "", 2).venta
    venta, _ = registrar_pago(venta["id"], monto=999)
    assert venta["historial_pagos"] == [Decimal("250.00")]


@pytest.mark.parametrize("pagos", [
    ["200", "400"],
    ["100", "100", "100"],
    ["0.01", "499.99"],
    ["50", "1000", "10"],
])
def test_saldo_flexible_nunca_negativo(joya_500, pagos):
    venta = crear_venta([joya_500.id], "Ana", "", -1).venta
    pagado = Decimal("0")
    for p in pagos:
        venta, _ = registrar_pago(venta["id"], p)
        pagado += Decimal(p)
        assert venta["saldo_restante"] == max(Decimal("0"), Decimal("500") - pagado)
        assert venta["saldo_restante"] >= 0
    assert venta["historial_pagos"] == [Decimal(p) for p in pagos]
    assert venta["completa"] == (pagado >= Decimal("500"))


def test_escenario_flexible(joya_500):
    venta = crear_venta([joya_500.id], "Marta", "1122334455", "flexible").venta

    venta, aviso = registrar_pago(venta["id"], 200)
    assert venta["saldo_restante"] == Decimal("300.00")
    assert venta["completa"] is False
    assert aviso.plantilla == "pago_flexible"

    venta, aviso = registrar_pago(venta["id"], 400)
    assert venta["saldo_restante"] == Decimal("0.00")
    assert venta["completa"] is True
    assert aviso.plantilla == "pago_completo"


def test_flexible_acepta_pagos_despues_de_completar(joya_500):
    venta = crear_venta([joya_500.id], "Marta", "", -1).venta
    registrar_pago(venta["id"], 500)
    venta, _ = registrar_pago(venta["id"], 20)
    assert venta["saldo_restante"] == Decimal("0.00")
    assert venta["total_pagado"] == Decimal("520.00")


@pytest.mark.parametrize("monto", [None, "", 0, -10, "abc"])
def test_flexible_monto_invalido(joya_500, monto):
    venta = crear_venta([joya_500.id], "Marta", "", -1).venta
    with pytest.raises(ErrorValidacion):
        registrar_pago(venta["id"], monto)
    assert obtener_venta(venta["id"])["historial_pagos"] == []


def test_pago_venta_inexistente():
    with pytest.raises(NoEncontradoError):
        registrar_pago(4242)


def test_fecha_de_pago_registrada(joya_500):
    venta = crear_venta([joya_500.id], "Ana", "", 2).venta
    cuando = datetime(2024, 5, 20, 15, 45)
    venta, _ = registrar_pago(venta["id"], fecha=cuando)
    assert venta["fechas_pago"] == [cuando]


def test_pago_fallido_no_deja_actualizacion_parcial(joya_500, monkeypatch):
    venta = crear_venta([joya_500.id], "Ana", "", 3).venta
    registrar_pago(venta["id"])
    antes = obtener_venta(venta["id"])
    estado_antes = almacen_ventas.obtener(venta["id"])

    def commit_roto(self):
        # Los cambios llegan a la base antes de que falle el commit
        self.flush()
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    with monkeypatch.context() as m:
        m.setattr(Session, "commit", commit_roto)
        with pytest.raises(ErrorPersistencia):
            registrar_pago(venta["id"])

    despues = obtener_venta(venta["id"])
    assert despues["cuotas_restantes"] == antes["cuotas_restantes"] == 2
    assert despues["historial_pagos"] == antes["historial_pagos"]
    assert despues["fechas_pago"] == antes["fechas_pago"]
    assert almacen_ventas.obtener(venta["id"]) == estado_antes


def test_pago_flexible_fallido_no_cambia_saldo(joya_500, monkeypatch):
    venta = crear_venta([joya_500.id], "Ana", "", -1).venta

    def commit_roto(self):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    with monkeypatch.context() as m:
        m.setattr(Session, "commit", commit_roto)
        with pytest.raises(ErrorPersistencia):
            registrar_pago(venta["id"], 100)

    despues = obtener_venta(venta["id"])
    assert despues["saldo_restante"] == Decimal("500.00")
    assert despues["historial_pagos"] == []
    assert despues["fechas_pago"] == []
