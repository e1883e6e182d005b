"""Status and message normalisation.

Upstream sources report status either as a small fixed tag vocabulary
(the aggregator) or as free text in English or Spanish. Everything that
reaches storage goes through this module first and comes out as a Spanish
label.
"""

import re
from enum import Enum

# Status sentinels written by the engine itself
REGISTERING = "Registrando..."
MANUAL = "Seguimiento manual"
TRACKING = "En seguimiento"
NO_DATA_YET = "Registrado (sin datos aún)"
LOGIN_REQUIRED = "LOGIN_REQUIRED"

PHRASE_SEPARATOR = " — "


class ParcelStatus(str, Enum):
    """Normalised parcel status category across all carriers."""

    UNKNOWN = "unknown"
    PENDING = "pending"  # Label created, not yet with carrier
    RECEIVED = "received"  # Carrier has the parcel
    IN_TRANSIT = "in_transit"  # On the way
    OUT_FOR_DELIVERY = "out_for_delivery"  # With local driver
    DELIVERED = "delivered"  # Successfully delivered
    FAILED_ATTEMPT = "failed_attempt"  # Delivery attempted but failed
    HELD = "held"  # Held at depot/customs
    RETURNED = "returned"  # Returned to sender
    EXCEPTION = "exception"  # Problem with delivery
    LOGIN_REQUIRED = "login_required"  # Merchant session expired


TAG_LABELS: dict[str, str] = {
    "Pending": "Pendiente",
    "InfoReceived": "Información recibida",
    "InTransit": "En tránsito",
    "OutForDelivery": "En reparto",
    "AttemptFail": "Intento fallido",
    "Delivered": "Entregado",
    "AvailableForPickup": "Disponible para recoger",
    "Exception": "Incidencia",
    "Expired": "Expirado",
}

# (english phrase, spanish label). Keys are lower case.
PHRASES: tuple[tuple[str, str], ...] = (
    # Pre-shipment
    ("shipping information received", "Información de envío recibida"),
    ("shipment information received", "Información del envío recibida"),
    ("label created", "Etiqueta creada"),
    ("order placed", "Pedido realizado"),
    ("order received", "Pedido recibido"),
    ("order confirmed", "Pedido confirmado"),
    ("package accepted", "Paquete aceptado"),
    ("package received", "Paquete recibido"),
    ("picked up", "Recolectado"),
    ("picked up by carrier", "Recolectado por el transportista"),
    ("shipment picked up", "Envío recolectado"),
    # In transit
    ("in transit", "En tránsito"),
    ("in transit to next facility", "En tránsito hacia la siguiente instalación"),
    ("departed facility", "Salió de instalación"),
    ("arrived at facility", "Llegó a instalación"),
    ("arrived at sort facility", "Llegó a centro de clasificación"),
    ("departed sort facility", "Salió del centro de clasificación"),
    ("arrived at transit facility", "Llegó a instalación de tránsito"),
    ("departed transit facility", "Salió de instalación de tránsito"),
    ("arrived at destination facility", "Llegó a instalación de destino"),
    ("arrived at hub", "Llegó al hub"),
    ("departed hub", "Salió del hub"),
    ("in customs", "En aduana"),
    ("customs clearance", "Despacho aduanero"),
    ("cleared customs", "Aduanas despachado"),
    ("customs cleared", "Aduanas despachado"),
    ("import customs", "Aduana de importación"),
    ("export customs", "Aduana de exportación"),
    ("on the way", "En camino"),
    ("package in transit", "Paquete en tránsito"),
    ("shipment in transit", "Envío en tránsito"),
    ("at local post office", "En oficina postal local"),
    ("with delivery courier", "Con el repartidor"),
    # Out for delivery
    ("out for delivery", "En reparto"),
    ("on vehicle for delivery", "En vehículo de reparto"),
    ("with delivery agent", "Con el agente de entrega"),
    ("delivery in progress", "Entrega en progreso"),
    ("delivery attempted", "Intento de entrega"),
    # Delivered
    ("delivered", "Entregado"),
    ("delivered to mailbox", "Entregado en buzón"),
    ("delivered to neighbor", "Entregado a vecino"),
    ("delivered to reception", "Entregado en recepción"),
    ("delivered to parcel locker", "Entregado en casillero"),
    ("delivered - left at door", "Entregado - dejado en la puerta"),
    ("package delivered", "Paquete entregado"),
    ("shipment delivered", "Envío entregado"),
    ("signed for by", "Firmado por"),
    # Available for pickup
    ("available for pickup", "Disponible para recoger"),
    ("held at customs", "Retenido en aduana"),
    ("held at post office", "Retenido en oficina postal"),
    ("notice left", "Aviso dejado"),
    ("delivery notice left", "Aviso de entrega dejado"),
    # Failed attempts
    ("delivery attempt failed", "Intento de entrega fallido"),
    ("delivery failed", "Entrega fallida"),
    ("unable to deliver", "No se pudo entregar"),
    ("recipient not available", "Destinatario no disponible"),
    ("no one home", "Nadie en casa"),
    ("wrong address", "Dirección incorrecta"),
    ("address issue", "Problema con la dirección"),
    ("insufficient address", "Dirección insuficiente"),
    ("incorrect address", "Dirección incorrecta"),
    # Exceptions
    ("exception", "Incidencia"),
    ("delay", "Retraso"),
    ("delayed", "Retrasado"),
    ("shipment delay", "Retraso en el envío"),
    ("weather delay", "Retraso por clima"),
    ("damaged", "Dañado"),
    ("package damaged", "Paquete dañado"),
    ("lost", "Perdido"),
    ("package lost", "Paquete perdido"),
    ("return to sender", "Devuelto al remitente"),
    ("returning to sender", "Devolviendo al remitente"),
    ("returned to sender", "Devuelto al remitente"),
    ("refused by recipient", "Rechazado por el destinatario"),
    # Expired
    ("expired", "Expirado"),
    ("shipment expired", "Envío expirado"),
    # FedEx
    ("shipment information sent to fedex", "Información enviada a FedEx"),
    ("picked up - package available for clearance", "Recolectado – disponible para despacho"),
    ("on fedex vehicle for delivery", "En vehículo FedEx para entrega"),
    ("international shipment release", "Envío internacional liberado"),
    # UPS
    ("your package is on its way", "Tu paquete está en camino"),
    ("package transferred to post office", "Paquete transferido a correo"),
    ("destination scan", "Escaneo en destino"),
    ("origin scan", "Escaneo en origen"),
    # USPS
    ("usps in possession of item", "USPS tiene el artículo"),
    ("acceptance", "Aceptado"),
    ("depart usps regional facility", "Salió de instalación regional USPS"),
    ("arrive usps regional facility", "Llegó a instalación regional USPS"),
    ("processed through facility", "Procesado en instalación"),
    ("sorting complete", "Clasificación completada"),
    # DHL
    ("processed at dhl facility", "Procesado en instalación DHL"),
    ("transit", "En tránsito"),
    ("delivered - signed", "Entregado – firmado"),
)

# Longest phrase first so "delivered to mailbox" is tried before "delivered".
# sorted() is stable, so equal-length phrases keep their table order.
_PHRASES_LONGEST_FIRST = tuple(sorted(PHRASES, key=lambda pair: len(pair[0]), reverse=True))

# Short function words must match as whole words: "del" is also a prefix of "delivered".
SPANISH_WORDS_RE = re.compile(r"\b(?:en|de|del|con|por|para)\b")
SPANISH_MARKERS = (
    "está", "llegó", "salió", "entregado", "tránsito", "reparto", "pendiente",
    "incidencia", "recibido", "envío", "paquete", "novedad", "clasificación",
    "instalación", "recolectado",
)

# (substring of a lower-cased spanish status, category), checked in order
_CATEGORY_MARKERS: tuple[tuple[str, ParcelStatus], ...] = (
    ("intento fallido", ParcelStatus.FAILED_ATTEMPT),
    ("intento de entrega", ParcelStatus.FAILED_ATTEMPT),
    ("no se pudo entregar", ParcelStatus.FAILED_ATTEMPT),
    ("devuelto", ParcelStatus.RETURNED),
    ("devolviendo", ParcelStatus.RETURNED),
    ("no entregado", ParcelStatus.EXCEPTION),
    ("entregado", ParcelStatus.DELIVERED),
    ("entregada", ParcelStatus.DELIVERED),
    ("en reparto", ParcelStatus.OUT_FOR_DELIVERY),
    ("en vehículo", ParcelStatus.OUT_FOR_DELIVERY),
    ("con el repartidor", ParcelStatus.OUT_FOR_DELIVERY),
    ("llega hoy", ParcelStatus.OUT_FOR_DELIVERY),
    ("incidencia", ParcelStatus.EXCEPTION),
    ("problema", ParcelStatus.EXCEPTION),
    ("retraso", ParcelStatus.EXCEPTION),
    ("perdido", ParcelStatus.EXCEPTION),
    ("dañado", ParcelStatus.EXCEPTION),
    ("retenido", ParcelStatus.HELD),
    ("aduana", ParcelStatus.HELD),
    ("disponible para recoger", ParcelStatus.HELD),
    ("en tránsito", ParcelStatus.IN_TRANSIT),
    ("en transito", ParcelStatus.IN_TRANSIT),
    ("en camino", ParcelStatus.IN_TRANSIT),
    ("llega mañana", ParcelStatus.IN_TRANSIT),
    ("salió", ParcelStatus.IN_TRANSIT),
    ("llegó", ParcelStatus.IN_TRANSIT),
    ("recolectado", ParcelStatus.RECEIVED),
    ("recibido", ParcelStatus.RECEIVED),
    ("aceptado", ParcelStatus.RECEIVED),
    ("pendiente", ParcelStatus.PENDING),
    ("información", ParcelStatus.PENDING),
    ("etiqueta creada", ParcelStatus.PENDING),
)

IMPORTANT_CATEGORIES = frozenset({
    ParcelStatus.DELIVERED,
    ParcelStatus.IN_TRANSIT,
    ParcelStatus.OUT_FOR_DELIVERY,
    ParcelStatus.EXCEPTION,
    ParcelStatus.FAILED_ATTEMPT,
})


def normalise_tag(tag: str) -> str:
    """Map an aggregator tag to its Spanish label; unknown tags pass through."""
    return TAG_LABELS.get(tag, tag)


def looks_like_spanish(text: str) -> bool:
    lower = text.lower()
    if SPANISH_WORDS_RE.search(lower):
        return True
    return any(marker in lower for marker in SPANISH_MARKERS)


def normalise_message(message: str) -> str:
    """Translate a free-text checkpoint message into Spanish.

    Order: already-Spanish text is returned untouched, then exact phrase,
    then prefix (keeping the untranslated remainder, e.g. a signer's name),
    then substring. Prefix and substring matching scan longest phrase first.
    Unknown text is returned unchanged.
    """
    if not message or not message.strip():
        return message
    if looks_like_spanish(message):
        return message

    stripped = message.strip()
    lower = stripped.lower()

    for phrase, label in PHRASES:
        if lower == phrase:
            return label

    for phrase, label in _PHRASES_LONGEST_FIRST:
        if lower.startswith(phrase):
            remainder = stripped[len(phrase):].strip()
            return f"{label}{PHRASE_SEPARATOR}{remainder}" if remainder else label

    for phrase, label in _PHRASES_LONGEST_FIRST:
        if phrase in lower:
            return label

    return message


def categorise(status: str | None) -> ParcelStatus:
    """Derive the status category of a normalised (Spanish) status string."""
    if not status:
        return ParcelStatus.UNKNOWN
    if status == LOGIN_REQUIRED:
        return ParcelStatus.LOGIN_REQUIRED

    lower = status.lower().strip()
    for marker, category in _CATEGORY_MARKERS:
        if marker in lower:
            return category
    return ParcelStatus.UNKNOWN


def is_delivered(status: str | None) -> bool:
    return categorise(status) is ParcelStatus.DELIVERED


def is_important(status: str | None) -> bool:
    """Whether a status change is worth notifying under "only important events"."""
    return categorise(status) in IMPORTANT_CATEGORIES
