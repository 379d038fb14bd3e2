import logging
from datetime import datetime, date
from decimal import Decimal
from io import BytesIO

from flask import Flask, request, jsonify, send_file, send_from_directory
from flask_login import LoginManager, login_user, login_required, logout_user, current_user
from reportlab.pdfgen import canvas
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm

from config import APP_CONFIG, LOGGING_CONFIG, NOTIFICACIONES_CONFIG
from services.auth_service import ProveedorIdentidad
from services.blob_store import get_blob_store
from services.db import init_db
from services.errores import ErrorJoyeria, ErrorValidacion, StockInsuficienteError, NoEncontradoError, ErrorPersistencia
from services.ganancias_service import reporte_ganancias
from services.inventario_service import (
    listar_joyas,
    crear_joya,
    actualizar_joya,
    eliminar_joya,
    subir_imagen,
    joya_to_dict,
)
from services.sales_service import (
    listar_ventas,
    obtener_venta,
    crear_venta,
    registrar_pago,
    eliminar_venta,
    editar_comprador,
)

logging.basicConfig(level=LOGGING_CONFIG["LEVEL"], format=LOGGING_CONFIG["FORMAT"])
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = APP_CONFIG["SECRET_KEY"]

# Initialize Flask-Login
login_manager = LoginManager()
login_manager.init_app(app)

proveedor_identidad = ProveedorIdentidad()

# Initialize DB eagerly
try:
    if init_db():
        logger.info("Base de datos inicializada")
except ErrorPersistencia as e:
    logger.error(f"No se pudo inicializar la base de datos: {e}")

STATUS_POR_ERROR = (
    (StockInsuficienteError, 409),
    (NoEncontradoError, 404),
    (ErrorValidacion, 400),
    (ErrorPersistencia, 500),
)


def _a_json(obj):
    """Convierte Decimal/datetime a tipos JSON (floats e ISO), recursivamente."""
    if isinstance(obj, dict):
        return {k: _a_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_a_json(v) for v in obj]
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return obj


def _body() -> dict:
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


@login_manager.user_loader
def load_user(user_id):
    return proveedor_identidad.cargar_usuario(user_id)


@login_manager.unauthorized_handler
def no_autorizado():
    return jsonify({"success": False, "error": "NO_AUTENTICADO", "mensaje": "Inicia sesión para continuar"}), 401


@app.errorhandler(ErrorJoyeria)
def manejar_error_joyeria(e: ErrorJoyeria):
    status = 500
    for tipo, codigo in STATUS_POR_ERROR:
        if isinstance(e, tipo):
            status = codigo
            break
    if status == 500:
        logger.error(f"{request.method} {request.path}: {e}")
    return jsonify(_a_json(e.to_dict())), status


@app.route("/api/login", methods=["POST"])
def api_login():
    data = _body() or request.form
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not proveedor_identidad.autenticar(email, password):
        return jsonify({"success": False, "error": "CREDENCIALES_INVALIDAS", "mensaje": "Correo o contraseña incorrectos"}), 401
    login_user(proveedor_identidad.cargar_usuario(email))
    return jsonify({"success": True, "email": email}), 200


@app.route("/api/logout", methods=["POST"])
@login_required
def api_logout():
    logout_user()
    return jsonify({"success": True}), 200


@app.route("/api/sesion", methods=["GET"])
def api_sesion():
    if current_user.is_authenticated:
        return jsonify({"autenticado": True, "email": current_user.email})
    return jsonify({"autenticado": False})


# ===== Inventario =====
@app.route("/api/joyas", methods=["GET"])
@login_required
def api_listar_joyas():
    return jsonify(_a_json([joya_to_dict(j) for j in listar_joyas()]))


@app.route("/api/joyas", methods=["POST"])
@login_required
def api_crear_joya():
    joya = crear_joya(_body())
    return jsonify(_a_json({"success": True, "joya": joya_to_dict(joya)})), 201


@app.route("/api/joyas/<int:joya_id>", methods=["PUT"])
@login_required
def api_actualizar_joya(joya_id: int):
    joya = actualizar_joya(joya_id, _body())
    return jsonify(_a_json({"success": True, "joya": joya_to_dict(joya)})), 200


@app.route("/api/joyas/<int:joya_id>", methods=["DELETE"])
@login_required
def api_eliminar_joya(joya_id: int):
    eliminar_joya(joya_id)
    return jsonify({"success": True}), 200


@app.route("/api/joyas/<int:joya_id>/imagen", methods=["POST"])
@login_required
def api_subir_imagen(joya_id: int):
    archivo = request.files.get("imagen")
    if archivo is None:
        raise ErrorValidacion("Falta el archivo: imagen")
    joya = subir_imagen(joya_id, archivo.filename, archivo.read())
    return jsonify(_a_json({"success": True, "joya": joya_to_dict(joya)})), 200


@app.route("/imagenes/<path:nombre>", methods=["GET"])
def imagenes(nombre: str):
    store = get_blob_store()
    return send_from_directory(store.directorio.resolve(), nombre)


# ===== Ventas =====
@app.route("/api/ventas", methods=["GET"])
@login_required
def api_listar_ventas():
    ventas = listar_ventas(request.args.get("desde"), request.args.get("hasta"))
    return jsonify(_a_json(ventas))


@app.route("/api/ventas", methods=["POST"])
@login_required
def api_crear_venta():
    data = _body()
    resultado = crear_venta(
        data.get("joya_ids") or [],
        comprador_nombre=data.get("comprador_nombre", ""),
        comprador_telefono=data.get("comprador_telefono", ""),
        cuotas=data.get("cuotas", 1),
    )
    return jsonify(_a_json({"success": True, "venta": resultado.venta, "rechazos": resultado.rechazos})), 201


@app.route("/api/ventas/<int:venta_id>/comprador", methods=["PUT"])
@login_required
def api_editar_comprador(venta_id: int):
    venta = editar_comprador(venta_id, _body().get("comprador_nombre"))
    return jsonify(_a_json({"success": True, "venta": venta})), 200


@app.route("/api/ventas/<int:venta_id>", methods=["DELETE"])
@login_required
def api_eliminar_venta(venta_id: int):
    eliminar_venta(venta_id)
    return jsonify({"success": True}), 200


@app.route("/api/ventas/<int:venta_id>/pagos", methods=["POST"])
@login_required
def api_registrar_pago(venta_id: int):
    venta, notificacion = registrar_pago(venta_id, _body().get("monto"))
    return jsonify(_a_json({"success": True, "venta": venta, "notificacion": notificacion.to_dict()})), 201


def _generar_resumen_pdf(venta: dict) -> BytesIO:
    """Genera el resumen de cuenta de una venta en PDF (en memoria).

    Incluye comprador, artículos, plan, total, cada pago registrado y el
    saldo pendiente.
    """
    fecha = venta.get("fecha_venta")
    fecha_display = fecha.strftime("%d/%m/%Y") if isinstance(fecha, (datetime, date)) else str(fecha or "")
    total = Decimal(venta.get("precio_venta_total") or 0)
    pagado = Decimal(venta.get("total_pagado") or 0)
    if venta.get("plan") == "flexible":
        plan = "Pago flexible"
        pendiente = Decimal(venta.get("saldo_restante") or 0)
    else:
        plan = f"{venta.get('cuotas')} cuotas de ${Decimal(venta.get('monto_cuota') or 0):.2f}"
        pendiente = Decimal("0") if venta.get("completa") else max(total - pagado, Decimal("0"))

    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4
    margin = 20 * mm

    y = height - margin
    c.setFont("Helvetica-Bold", 16)
    c.drawString(margin, y, f"Resumen de cuenta - {NOTIFICACIONES_CONFIG['NOMBRE_TIENDA']}")
    y -= 12 * mm

    c.setFont("Helvetica", 11)
    c.drawString(margin, y, f"Fecha de la venta: {fecha_display}")
    y -= 6 * mm
    c.drawString(margin, y, f"Cliente: {venta.get('comprador_nombre') or ''}")
    y -= 6 * mm
    c.drawString(margin, y, f"Artículos: {(venta.get('items') or '')[:80]}")
    y -= 6 * mm
    c.drawString(margin, y, f"Plan: {plan}")
    y -= 10 * mm

    # Encabezado de la tabla de pagos
    c.setFont("Helvetica-Bold", 10)
    x_nro = margin
    x_fecha = x_nro + 15 * mm
    x_monto = width - margin
    c.drawString(x_nro, y, "#")
    c.drawString(x_fecha, y, "Fecha de pago")
    c.drawRightString(x_monto, y, "Monto")
    y -= 5 * mm
    c.line(margin, y, width - margin, y)
    y -= 6 * mm

    c.setFont("Helvetica", 10)
    pagos = list(zip(venta.get("fechas_pago") or [], venta.get("historial_pagos") or []))
    if not pagos:
        c.drawString(x_fecha, y, "Sin pagos registrados")
        y -= 6 * mm
    for i, (f, monto) in enumerate(pagos, start=1):
        if y < margin + 30 * mm:
            c.showPage()
            c.setFont("Helvetica", 10)
            y = height - margin
        f_display = f.strftime("%d/%m/%Y %H:%M") if isinstance(f, datetime) else str(f)
        c.drawString(x_nro, y, str(i))
        c.drawString(x_fecha, y, f_display)
        c.drawRightString(x_monto, y, f"${Decimal(monto):.2f}")
        y -= 6 * mm
    y -= 6 * mm

    c.setFont("Helvetica-Bold", 11)
    c.drawRightString(x_monto, y, f"TOTAL: ${total:.2f}")
    y -= 6 * mm
    c.drawRightString(x_monto, y, f"PAGADO: ${pagado:.2f}")
    y -= 6 * mm
    c.drawRightString(x_monto, y, f"PENDIENTE: ${pendiente:.2f}")

    c.showPage()
    c.save()
    buf.seek(0)
    return buf


@app.route("/api/ventas/<int:venta_id>/resumen", methods=["GET"])
@login_required
def api_resumen_venta(venta_id: int):
    """Descarga el resumen de cuenta en PDF de una venta."""
    venta = obtener_venta(venta_id)
    pdf_buf = _generar_resumen_pdf(venta)
    filename = f"Resumen-venta-{venta_id}.pdf"
    return send_file(pdf_buf, mimetype="application/pdf", as_attachment=True, download_name=filename)


# ===== Ganancias =====
@app.route("/api/ganancias", methods=["GET"])
@login_required
def api_ganancias():
    reporte = reporte_ganancias(listar_ventas(), desde=request.args.get("desde"), hasta=request.args.get("hasta"))
    return jsonify(_a_json(reporte))


if __name__ == "__main__":
    print("🔄 Iniciando servidor...")
    if not proveedor_identidad.usuarios:
        print("⚠️ USUARIOS_JSON vacío: nadie podrá iniciar sesión")
    print(f"📱 Abre tu navegador en: http://localhost:{APP_CONFIG['PORT']}")
    app.run(host=APP_CONFIG["HOST"], port=APP_CONFIG["PORT"], debug=APP_CONFIG["DEBUG"])
