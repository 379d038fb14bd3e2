from sqlalchemy import Column, Integer, String, Numeric, Text, DateTime, JSON, CheckConstraint, func
from .db import Base


class Joya(Base):
    """Artículo del inventario. La cantidad nunca puede quedar negativa."""

    __tablename__ = 'joyas'
    __table_args__ = (
        CheckConstraint('cantidad >= 0', name='ck_joyas_cantidad_no_negativa'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre = Column(String(255), nullable=False)
    tipo = Column(String(50), nullable=False, default='Sin tipo')   # Anillo, Aros, Collar, etc.
    precio_compra = Column(Numeric(12, 2), nullable=False, default=0)  # Costo
    precio_venta = Column(Numeric(12, 2), nullable=False, default=0)
    cantidad = Column(Integer, nullable=False, default=0)
    imagen = Column(Text, nullable=True)  # URL devuelta por el blob store
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class Venta(Base):
    """Venta de una o más joyas.

    cuotas = -1 indica plan flexible: en ese caso se usa saldo_restante y
    cuotas_restantes queda en NULL. Con cuotas fijas es al revés.
    historial_pagos guarda los montos como strings decimales y fechas_pago
    los timestamps ISO, emparejados por posición.
    """

    __tablename__ = 'ventas'

    id = Column(Integer, primary_key=True, autoincrement=True)
    items = Column(Text, nullable=False)  # Nombres separados por ", "
    id_joya = Column(Integer, nullable=True)  # Solo en ventas de una joya
    comprador_nombre = Column(String(255), nullable=False)
    comprador_telefono = Column(String(50), nullable=False, default='')
    precio_venta_total = Column(Numeric(12, 2), nullable=False)
    precio_compra_total = Column(Numeric(12, 2), nullable=False)
    cuotas = Column(Integer, nullable=False)
    monto_cuota = Column(Numeric(12, 2), nullable=True)
    cuotas_restantes = Column(Integer, nullable=True)
    saldo_restante = Column(Numeric(12, 2), nullable=True)
    fechas_pago = Column(JSON, nullable=False, default=list)
    historial_pagos = Column(JSON, nullable=False, default=list)
    fecha_venta = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
