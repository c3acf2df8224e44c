"""
HTML bodies for transactional emails. Each builder returns (subject, html).
"""

from html import escape
from typing import Iterable, List, Optional, Tuple

_WRAPPER = '<div style="font-family: sans-serif; color: #222;">{body}</div>'
_CELL = 'style="padding: 6px 12px; border: 1px solid #ccc;"'


def format_cop(amount: float) -> str:
    """20000 -> '$20.000 COP' (es-CO grouping, no decimals)"""
    return "$" + f"{int(round(amount)):,}".replace(",", ".") + " COP"


def _mode_label(mode: Optional[str]) -> str:
    if mode in ("safety", "Safety Car"):
        return "Safety Car"
    return "Full Throttle"


def pick_confirmation(name: str, amount: float, mode: str, picks: Iterable[dict], site_url: str) -> Tuple[str, str]:
    rows = []
    for p in picks:
        session = "Clasificación" if p.get("session_type") == "qualy" else "Carrera"
        direction = "Mejor" if p.get("betterOrWorse") == "mejor" else "Peor"
        line = float(p.get("line", 0))
        rows.append(
            f"<tr><td {_CELL}>{escape(str(p.get('driver', '')))}</td><td {_CELL}>{session}</td>"
            f"<td {_CELL}>{line:.1f}</td><td {_CELL}>{direction}</td></tr>"
        )
    body = (
        '<h2 style="color: #0ea5e9;">Tus Picks Han Sido Registrados</h2>'
        f"<p>Hola <strong>{escape(name)}</strong>,</p>"
        "<p>Gracias por participar. Aquí tienes el resumen de tu jugada:</p>"
        "<ul>"
        f"<li><strong>Modo:</strong> {_mode_label(mode)}</li>"
        f"<li><strong>Depósito:</strong> {format_cop(amount)}</li>"
        f"<li><strong>MMC Coins:</strong> {int(amount // 1000)}</li>"
        f"<li><strong>Fuel Coins:</strong> {int(amount)}</li>"
        "</ul>"
        '<table style="width: 100%; border-collapse: collapse; margin-top: 12px;">'
        f"<thead><tr><th {_CELL}>Piloto</th><th {_CELL}>Sesión</th><th {_CELL}>Línea</th><th {_CELL}>Pick</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table>"
        f'<p style="margin-top: 20px;">Puedes ver el resumen en tu <a href="{site_url}/wallet">billetera</a>.</p>'
        "<p>¡Buena suerte! 🏁</p>"
    )
    return "✅ Confirmación de Picks - MotorManía", _WRAPPER.format(body=body)


def numbers_confirmation(name: str, numbers: List[str], context: str, site_url: str,
                         order_id: Optional[str] = None, amount: Optional[float] = None) -> Tuple[str, str]:
    items = "".join(f"<li><strong>{escape(n)}</strong></li>" for n in numbers)
    if context == "compra":
        subject = "🎟️ Tus números extra - MotorManía"
        intro = "Gracias por tu compra. Estos son tus nuevos números para el sorteo:"
    else:
        subject = "🎟️ Bienvenido a MotorManía - Tus números"
        intro = "Tu registro fue exitoso. Estos son tus números gratuitos para el sorteo:"
    extra = ""
    if order_id:
        extra += f"<p><strong>Orden:</strong> {escape(order_id)}</p>"
    if amount:
        extra += f"<p><strong>Valor:</strong> {format_cop(amount)}</p>"
    body = (
        f"<p>Hola <strong>{escape(name)}</strong>,</p><p>{intro}</p><ul>{items}</ul>{extra}"
        f'<p>Consulta tus números en tu <a href="{site_url}/dashboard">panel</a>.</p>'
    )
    return subject, _WRAPPER.format(body=body)


def coins_confirmation(amount: float, mmc: int, fuel: int, site_url: str) -> Tuple[str, str]:
    fuel_text = f"{int(fuel):,}".replace(",", ".")
    body = (
        '<h2 style="color: #0ea5e9;">Recarga Exitosa</h2>'
        f"<p>Has recibido <strong>{mmc} MMC Coins</strong> y <strong>{fuel_text} Fuel Coins</strong> "
        f"por tu depósito de <strong>{format_cop(amount)}</strong>.</p>"
        f'<p>Revisa el detalle completo en tu <a href="{site_url}/wallet">billetera</a>.</p>'
        "<p>Gracias por divertirte con MotorManía. 🏎️</p>"
    )
    return "✅ Confirmación de Recarga - MotorManía", _WRAPPER.format(body=body)


def vip_confirmation(name: str, plan_name: str, amount: float, order_id: str,
                     expires_at: Optional[str], site_url: str, race_pass_gp: Optional[str] = None) -> Tuple[str, str]:
    gp_line = f"<li><strong>Gran Premio:</strong> {escape(race_pass_gp)}</li>" if race_pass_gp else ""
    expiry_line = f"<li><strong>Vigencia hasta:</strong> {escape(expires_at[:10])}</li>" if expires_at else ""
    body = (
        '<h2 style="color: #f59e0b;">¡Bienvenido a F1 Fantasy VIP!</h2>'
        f"<p>Hola <strong>{escape(name)}</strong>,</p>"
        "<p>Tu pago fue confirmado. Estos son los detalles de tu acceso:</p>"
        "<ul>"
        f"<li><strong>Plan:</strong> {escape(plan_name)}</li>"
        f"<li><strong>Valor:</strong> {format_cop(amount)}</li>"
        f"<li><strong>Orden:</strong> {escape(order_id)}</li>"
        f"{gp_line}{expiry_line}"
        "</ul>"
        f'<p>Entra a tu <a href="{site_url}/f1-fantasy-vip-panel">panel VIP</a> para hacer tus predicciones.</p>'
    )
    return "🏆 Acceso VIP confirmado - MotorManía", _WRAPPER.format(body=body)


def pick_results(name: str, gp_name: str, mode: str, correct: int, total: int, result: str,
                 payout: float, site_url: str) -> Tuple[str, str]:
    body = (
        f"<p>Hola {escape(name or 'fanático de la F1')},</p>"
        f"<p>Tus PICKS del GP <strong>{escape(gp_name)}</strong> han sido procesados.</p>"
        f"<p><strong>Modo:</strong> {_mode_label(mode)}<br/>"
        f"<strong>Correctos:</strong> {correct} / {total}<br/>"
        f"<strong>Resultado:</strong> {result.upper()}<br/>"
        f"<strong>Premio:</strong> {format_cop(payout)}</p>"
        "<hr/><p>Consulta más detalles en tu panel:</p>"
        f'<p>🚀 <a href="{site_url}/dashboard">Ir al Dashboard</a></p>'
    )
    return "🏁 Tus PICKS han sido procesados", _WRAPPER.format(body=body)


PREDICTION_ROWS = (
    ("Qualifying (Pole)", (("1.", "pole1"), ("2.", "pole2"), ("3.", "pole3"))),
    ("Race (GP)", (("1.", "gp1"), ("2.", "gp2"), ("3.", "gp3"))),
    ("Predicciones Adicionales", (
        ("Pit Stop Más Rápido:", "fastest_pit_stop_team"),
        ("Vuelta Más Rápida:", "fastest_lap_driver"),
        ("Piloto del Día:", "driver_of_the_day"),
    )),
)


def prediction_confirmation(name: str, gp_name: str, predictions: dict, site_url: str) -> Tuple[str, str]:
    sections = []
    for title, fields in PREDICTION_ROWS:
        items = "".join(
            f"<li>{label} <strong>{escape(str(predictions.get(key) or 'No seleccionado'))}</strong></li>"
            for label, key in fields
        )
        sections.append(f'<h3 style="color: #f59e0b;">{title}</h3><ul>{items}</ul>')
    body = (
        f'<h2 style="color: #0ea5e9;">🏁 ¡Predicciones confirmadas, {escape(name)}!</h2>'
        f"<p>Tus predicciones para el {escape(gp_name)} han sido recibidas:</p>"
        f"{''.join(sections)}"
        "<p>¡Compite por premios! Los 3 mejores por carrera y los 3 mejores de la temporada ganan recompensas exclusivas.</p>"
        f'<p><a href="{site_url}/jugar-y-gana">Ver clasificación</a></p>'
    )
    return f"¡Tus Predicciones para el {gp_name} han sido enviadas!", _WRAPPER.format(body=body)
