"""
Fixtures compartidas para las pruebas de Las Marias.

Cada prueba corre contra una base SQLite en memoria nueva, un estado de
ventas vacío y un directorio de imágenes temporal.
"""
import os

# Antes de importar config: base en memoria y un usuario de prueba
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["USUARIOS_JSON"] = '{"duenia@lasmarias.com": "secreto123"}'
os.environ["NOMBRE_TIENDA"] = "Las Marias"

import pytest

from services import db
from services.blob_store import BlobStoreLocal, set_blob_store
from services.estado_ventas import almacen_ventas

USUARIO = {"email": "duenia@lasmarias.com", "password": "secreto123"}


@pytest.fixture(autouse=True)
def base_de_datos():
    db.configurar("sqlite://")
    db.init_db()
    almacen_ventas.limpiar()
    yield
    db.drop_db()
    almacen_ventas.limpiar()


@pytest.fixture(autouse=True)
def blob_store(tmp_path):
    store = BlobStoreLocal(directorio=str(tmp_path / "imagenes"), url_base="/imagenes")
    set_blob_store(store)
    yield store
    set_blob_store(None)


@pytest.fixture
def client():
    from app import app
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


@pytest.fixture
def client_logueado(client):
    resp = client.post("/api/login", json=USUARIO)
    assert resp.status_code == 200
    return client


@pytest.fixture
def anillo():
    from services.inventario_service import crear_joya
    return crear_joya({"nombre": "Anillo", "tipo": "Anillos", "precio_compra": 100, "precio_venta": 300, "cantidad": 5})


@pytest.fixture
def collar():
    from services.inventario_service import crear_joya
    return crear_joya({"nombre": "Collar", "tipo": "Collares", "precio_compra": 80, "precio_venta": 200, "cantidad": 1})
