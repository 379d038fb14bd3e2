"""
Errores de dominio de Las Marias.

Cada error lleva un `codigo` corto que la API devuelve en el campo "error"
del JSON, igual que el resto de las respuestas ({"success": False, "error": ...}).
"""
from typing import List, Dict, Any, Optional


class ErrorJoyeria(Exception):
    codigo = "ERROR"

    def __init__(self, mensaje: str, codigo: Optional[str] = None):
        super().__init__(mensaje)
        self.mensaje = mensaje
        if codigo:
            self.codigo = codigo

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.codigo, "mensaje": self.mensaje}


class ErrorValidacion(ErrorJoyeria, ValueError):
    """Dato faltante o mal formado. La operación no se ejecuta."""
    codigo = "VALIDACION"


class PagoRechazadoError(ErrorValidacion):
    """Pago sobre una venta en cuotas que ya no tiene cuotas pendientes."""
    codigo = "PAGO_RECHAZADO"


class StockInsuficienteError(ErrorJoyeria):
    codigo = "STOCK_INSUFICIENTE"

    def __init__(self, mensaje: str, rechazos: Optional[List[Dict[str, Any]]] = None):
        super().__init__(mensaje)
        self.rechazos = list(rechazos or [])

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["rechazos"] = self.rechazos
        return data


class NoEncontradoError(ErrorJoyeria, LookupError):
    codigo = "NO_ENCONTRADO"


class ErrorPersistencia(ErrorJoyeria, RuntimeError):
    """Falla de la base de datos o del almacenamiento de imágenes. No se reintenta."""
    codigo = "ERROR_PERSISTENCIA"
