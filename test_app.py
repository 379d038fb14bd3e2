"""
Pruebas de la API HTTP (Flask test client)
"""
from io import BytesIO

from conftest import USUARIO


def _crear_joya(client, **kwargs):
    data = {"nombre": "Anillo", "precio_compra": 100, "precio_venta": 300, "cantidad": 2}
    data.update(kwargs)
    resp = client.post("/api/joyas", json=data)
    assert resp.status_code == 201
    return resp.get_json()["joya"]


def test_requiere_sesion(client):
    for method, url in [
        ("get", "/api/joyas"),
        ("get", "/api/ventas"),
        ("post", "/api/ventas"),
        ("get", "/api/ganancias"),
    ]:
        resp = getattr(client, method)(url)
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "NO_AUTENTICADO"


def test_login_invalido(client):
    resp = client.post("/api/login", json={"email": USUARIO["email"], "password": "otra"})
    assert resp.status_code == 401
    assert resp.get_json()["success"] is False

    resp = client.post("/api/login", json={"email": "nadie@x.com", "password": "secreto123"})
    assert resp.status_code == 401


def test_login_y_logout(client):
    resp = client.post("/api/login", json={"email": "  DUENIA@lasmarias.com ", "password": "secreto123"})
    assert resp.status_code == 200
    assert client.get("/api/sesion").get_json() == {"autenticado": True, "email": USUARIO["email"]}

    assert client.post("/api/logout").status_code == 200
    assert client.get("/api/sesion").get_json() == {"autenticado": False}
    assert client.get("/api/joyas").status_code == 401


def test_alta_de_joya(client_logueado):
    joya = _crear_joya(client_logueado, tipo="Anillos")
    assert joya["precio_venta"] == 300.0
    assert joya["ganancia"] == 200.0

    lista = client_logueado.get("/api/joyas").get_json()
    assert [j["nombre"] for j in lista] == ["Anillo"]


def test_alta_de_joya_invalida(client_logueado):
    resp = client_logueado.post("/api/joyas", json={"nombre": "", "precio_compra": 1, "precio_venta": 2, "cantidad": 1})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "VALIDACION"


def test_editar_y_eliminar_joya(client_logueado):
    joya = _crear_joya(client_logueado)
    resp = client_logueado.put(f"/api/joyas/{joya['id']}", json={"cantidad": 9})
    assert resp.status_code == 200
    assert resp.get_json()["joya"]["cantidad"] == 9

    assert client_logueado.delete(f"/api/joyas/{joya['id']}").status_code == 200
    assert client_logueado.delete(f"/api/joyas/{joya['id']}").status_code == 404


def test_venta_pago_y_aviso(client_logueado):
    joya = _crear_joya(client_logueado)
    resp = client_logueado.post("/api/ventas", json={
        "joya_ids": [joya["id"], 999],
        "comprador_nombre": "María",
        "comprador_telefono": "+54 9 11 1234-5678",
        "cuotas": 2,
    })
    assert resp.status_code == 201
    body = resp.get_json()
    venta = body["venta"]
    assert venta["monto_cuota"] == 150.0
    assert body["rechazos"] == [{"joya_id": 999, "nombre": None, "motivo": "NO_ENCONTRADA"}]

    resp = client_logueado.post(f"/api/ventas/{venta['id']}/pagos", json={})
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["venta"]["cuotas_restantes"] == 1
    assert body["notificacion"]["plantilla"] == "cuotas_pendientes"
    assert body["notificacion"]["url"].startswith("https://wa.me/5491112345678?text=")

    ventas = client_logueado.get("/api/ventas").get_json()
    assert len(ventas) == 1
    assert ventas[0]["historial_pagos"] == [150.0]


def test_venta_sin_stock_409(client_logueado):
    joya = _crear_joya(client_logueado, cantidad=1)
    assert client_logueado.post("/api/ventas", json={"joya_ids": [joya["id"]], "cuotas": 1}).status_code == 201

    resp = client_logueado.post("/api/ventas", json={"joya_ids": [joya["id"]], "cuotas": 1})
    assert resp.status_code == 409
    body = resp.get_json()
    assert body["error"] == "STOCK_INSUFICIENTE"
    assert body["rechazos"][0]["joya_id"] == joya["id"]


def test_venta_cuotas_invalidas_400(client_logueado):
    joya = _crear_joya(client_logueado)
    resp = client_logueado.post("/api/ventas", json={"joya_ids": [joya["id"]], "cuotas": 0})
    assert resp.status_code == 400
    assert client_logueado.post("/api/ventas", json={"cuotas": 1}).status_code == 400


def test_venta_joya_ids_no_es_lista_400(client_logueado):
    resp = client_logueado.post("/api/ventas", json={"joya_ids": 5, "cuotas": 1})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "VALIDACION"


def test_pago_flexible_por_api(client_logueado):
    joya = _crear_joya(client_logueado)
    venta = client_logueado.post("/api/ventas", json={"joya_ids": [joya["id"]], "cuotas": -1}).get_json()["venta"]

    assert client_logueado.post(f"/api/ventas/{venta['id']}/pagos", json={}).status_code == 400
    resp = client_logueado.post(f"/api/ventas/{venta['id']}/pagos", json={"monto": 120.5})
    assert resp.status_code == 201
    assert resp.get_json()["venta"]["saldo_restante"] == 179.5
    assert resp.get_json()["notificacion"]["plantilla"] == "pago_flexible"


def test_editar_comprador_y_eliminar_venta(client_logueado):
    joya = _crear_joya(client_logueado)
    venta = client_logueado.post("/api/ventas", json={"joya_ids": [joya["id"]]}).get_json()["venta"]

    resp = client_logueado.put(f"/api/ventas/{venta['id']}/comprador", json={"comprador_nombre": "Lola"})
    assert resp.status_code == 200
    assert resp.get_json()["venta"]["comprador_nombre"] == "Lola"

    assert client_logueado.delete(f"/api/ventas/{venta['id']}").status_code == 200
    resp = client_logueado.delete(f"/api/ventas/{venta['id']}")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "NO_ENCONTRADO"
    assert client_logueado.post(f"/api/ventas/{venta['id']}/pagos", json={}).status_code == 404


def test_ganancias(client_logueado):
    joya = _crear_joya(client_logueado)
    venta = client_logueado.post("/api/ventas", json={"joya_ids": [joya["id"]], "cuotas": 3}).get_json()["venta"]
    client_logueado.post(f"/api/ventas/{venta['id']}/pagos", json={})

    reporte = client_logueado.get("/api/ganancias").get_json()
    assert reporte["total_cobrado"] == 100.0
    assert len(reporte["por_pagos"]) == 1
    assert reporte["por_pagos"][0]["ventas"] == 1
    assert reporte["ganancia_mes_actual_por_venta"] == 200.0


def test_ganancias_rango_sin_ventas_no_toca_el_mes_actual(client_logueado):
    joya = _crear_joya(client_logueado, precio_compra=40, precio_venta=100)
    client_logueado.post("/api/ventas", json={"joya_ids": [joya["id"]], "cuotas": 1})

    sin_filtro = client_logueado.get("/api/ganancias").get_json()
    con_filtro = client_logueado.get("/api/ganancias?desde=2020-01-01&hasta=2020-12-31").get_json()

    assert sin_filtro["ganancia_mes_actual_por_venta"] == 60.0
    assert con_filtro["ganancia_mes_actual_por_venta"] == 60.0
    assert [d["ganancia"] for d in sin_filtro["detalle"]] == [60.0]
    assert con_filtro["detalle"] == []


def test_ganancias_rango_invalido(client_logueado):
    resp = client_logueado.get("/api/ganancias?desde=2024-05-01&hasta=2024-04-01")
    assert resp.status_code == 400


def test_resumen_pdf(client_logueado):
    joya = _crear_joya(client_logueado)
    venta = client_logueado.post("/api/ventas", json={"joya_ids": [joya["id"]], "cuotas": 2}).get_json()["venta"]
    client_logueado.post(f"/api/ventas/{venta['id']}/pagos", json={})

    resp = client_logueado.get(f"/api/ventas/{venta['id']}/resumen")
    assert resp.status_code == 200
    assert resp.mimetype == "application/pdf"
    assert resp.data.startswith(b"%PDF")
    assert f"Resumen-venta-{venta['id']}.pdf" in resp.headers["Content-Disposition"]

    assert client_logueado.get("/api/ventas/777/resumen").status_code == 404


def test_subir_y_servir_imagen(client_logueado):
    joya = _crear_joya(client_logueado)
    resp = client_logueado.post(
        f"/api/joyas/{joya['id']}/imagen",
        data={"imagen": (BytesIO(b"contenido-png"), "anillo.png")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 200
    url = resp.get_json()["joya"]["imagen"]
    assert url.startswith("/imagenes/")

    img = client_logueado.get(url)
    assert img.status_code == 200
    assert img.data == b"contenido-png"
    img.close()


def test_subir_imagen_sin_archivo(client_logueado):
    joya = _crear_joya(client_logueado)
    resp = client_logueado.post(f"/api/joyas/{joya['id']}/imagen", data={}, content_type="multipart/form-data")
    assert resp.status_code == 400
