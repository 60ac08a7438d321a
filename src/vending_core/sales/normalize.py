"""Record normalization: raw source payloads -> NormalizedSaleRecord.

This module turns the loosely-typed JSON the vendor API and the persisted
store return into typed records, then places each record on the business
calendar.

What it does:
- Decodes HTML entities left in product and topping names by the vendor CMS.
- Splits "Base : topping1, topping2" descriptors into product + toppings.
  A non-empty structured topping list always wins over the parsed text.
- Buckets free-text payment methods into a closed set of categories.
- Applies fail-safe defaults: an unparsable or negative price becomes 0.00,
  a missing or non-positive unit count becomes 1. The record is kept.

Payment-method bucketing
------------------------
``payment_method_raw`` is normalized (lowercased, accents removed, spaces
collapsed) and matched by substring, first match wins:

- "tarjeta", "card", "credito", "debito", "visa", ...  -> card
- "bizum"                                             -> bizum
- "apple", "google", "wallet", "paypal", ...          -> digital_wallet
- "efectivo", "cash", "metalico", "moneda", ...       -> cash
- Empty or anything else                              -> cash
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional

from vending_core.exceptions import TimeConversionError
from vending_core.models import (
    ZERO,
    NormalizedSaleRecord,
    Origin,
    PaymentCategory,
    RawSaleRecord,
    SaleStatus,
)
from vending_core.utils import decode_entities, normalize_token, to_decimal, to_int

if TYPE_CHECKING:
    from datetime import date

    from vending_core.timezone import TimeZoneConverter

logger = logging.getLogger(__name__)

UNNAMED_PRODUCT = "Sin nombre"
PRODUCT_DELIMITER = ":"
TOPPING_DELIMITER = ","

# Ordered: card tokens are checked before cash so "tarjeta (no efectivo)" is card.
PAYMENT_TOKENS: list[tuple[tuple[str, ...], PaymentCategory]] = [
    (
        ("tarjeta", "card", "credito", "debito", "visa", "mastercard", "contactless", "tpv"),
        PaymentCategory.CARD,
    ),
    (("bizum",), PaymentCategory.BIZUM),
    (
        ("apple", "google", "samsung pay", "wallet", "paypal", "qr"),
        PaymentCategory.DIGITAL_WALLET,
    ),
    (("efectivo", "cash", "metalico", "moneda", "billete"), PaymentCategory.CASH),
]

DEFAULT_PAYMENT_CATEGORY = PaymentCategory.CASH

STATUS_TOKENS: dict[str, SaleStatus] = {
    "exitoso": SaleStatus.SUCCESS,
    "exito": SaleStatus.SUCCESS,
    "success": SaleStatus.SUCCESS,
    "ok": SaleStatus.SUCCESS,
    "completado": SaleStatus.SUCCESS,
    "fallido": SaleStatus.FAILED,
    "failed": SaleStatus.FAILED,
    "error": SaleStatus.FAILED,
}


# --------------------------------------------------------------------
# Field-level helpers
# --------------------------------------------------------------------


def split_product(descriptor: Any) -> tuple[str, tuple[str, ...]]:
    """Split a product descriptor into base product and embedded toppings.

    Examples:
        >>> split_product("A&ccedil;a&iacute; Bowl: Granola, Fresa ,")
        ('Açaí Bowl', ('Granola', 'Fresa'))
        >>> split_product("")
        ('Sin nombre', ())
    """
    text = decode_entities(descriptor)
    if not text:
        return UNNAMED_PRODUCT, ()
    base, sep, rest = text.partition(PRODUCT_DELIMITER)
    toppings = tuple(t.strip() for t in rest.split(TOPPING_DELIMITER) if t.strip()) if sep else ()
    return (base.strip() or text), toppings


def resolve_toppings(
    structured: Optional[Iterable[str]],
    parsed: tuple[str, ...],
) -> tuple[str, ...]:
    """Structured toppings take precedence when non-empty; else the parsed list."""
    if structured:
        names = tuple(n for n in (decode_entities(t) for t in structured) if n)
        if names:
            return names
    return parsed


def normalize_payment_method(raw: Any) -> PaymentCategory:
    """Map a vendor payment string into the closed category set.

    Examples:
        >>> normalize_payment_method("Tarjeta cr&eacute;dito")
        <PaymentCategory.CARD: 'card'>
        >>> normalize_payment_method("")
        <PaymentCategory.CASH: 'cash'>
    """
    token = normalize_token(raw)
    if not token:
        return DEFAULT_PAYMENT_CATEGORY
    for needles, category in PAYMENT_TOKENS:
        if any(n in token for n in needles):
            return category
    return DEFAULT_PAYMENT_CATEGORY


def normalize_status(raw: Any) -> SaleStatus:
    """Vendor sale state -> SaleStatus. Missing state means success."""
    token = normalize_token(raw)
    if not token:
        return SaleStatus.SUCCESS
    return STATUS_TOKENS.get(token, SaleStatus.OTHER)


def parse_price(value: Any) -> Decimal:
    """Fail-safe price: unparsable or negative -> 0.00."""
    price = to_decimal(value)
    if price is None or price < 0:
        return ZERO
    return price


def parse_units(value: Any) -> int:
    """Fail-safe unit count: missing, unparsable or < 1 -> 1."""
    units = to_int(value)
    if units is None or units < 1:
        return 1
    return units


def _topping_names(value: Any) -> Optional[tuple[str, ...]]:
    """Read a structured topping list ([{"nombre": ..., "posicion": ...}] or [str])."""
    if not isinstance(value, (list, tuple)):
        return None
    names = []
    for item in value:
        if isinstance(item, Mapping):
            name = item.get("nombre") or item.get("name") or item.get("posicion")
        else:
            name = item
        if name is not None and str(name).strip():
            names.append(str(name))
    return tuple(names)


def _source_id(payload: Mapping[str, Any], *fields: str) -> Optional[str]:
    for f in fields:
        value = payload.get(f)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


# --------------------------------------------------------------------
# Payload -> RawSaleRecord
# --------------------------------------------------------------------


def parse_vendor_sale(
    payload: Mapping[str, Any],
    machine_id: str,
    vendor_date: date,
    origin: Origin = Origin.LIVE,
) -> RawSaleRecord:
    """Build a RawSaleRecord from one entry of the vendor ``ventas`` list.

    Args:
        payload: One sale dict from the vendor API response.
        machine_id: Owning machine (the API response does not carry it).
        vendor_date: The vendor date that was queried; used when the entry
            carries no ``fecha`` of its own.
        origin: Source tag, live API by default.
    """
    fecha = str(payload.get("fecha") or vendor_date.isoformat())[:10]
    return RawSaleRecord(
        source_id=_source_id(payload, "id", "venta_api_id", "numero_orden"),
        machine_id=machine_id,
        vendor_date=fecha,
        vendor_time=str(payload.get("hora") or "00:00"),
        price_amount=parse_price(payload.get("precio")),
        unit_count=parse_units(payload.get("cantidad_unidades") or payload.get("cantidad")),
        product_descriptor=str(payload.get("producto") or ""),
        toppings=_topping_names(payload.get("toppings")),
        payment_method_raw=str(payload.get("metodo_pago") or "efectivo"),
        status=normalize_status(payload.get("estado")),
        origin=origin,
    )


def parse_store_row(row: Mapping[str, Any], machine_id: Optional[str] = None) -> RawSaleRecord:
    """Build a RawSaleRecord from one persisted-store row (``ventas_historico``).

    ``machine_id`` overrides the row's ``maquina_id`` when given.
    """
    machine_id = machine_id or str(row.get("maquina_id") or "")
    fecha = str(row.get("fecha") or "")[:10]
    return RawSaleRecord(
        source_id=_source_id(row, "venta_api_id", "numero_orden"),
        machine_id=machine_id,
        vendor_date=fecha,
        vendor_time=str(row.get("hora") or "00:00"),
        price_amount=parse_price(row.get("precio")),
        unit_count=parse_units(row.get("cantidad_unidades")),
        product_descriptor=str(row.get("producto") or ""),
        toppings=_topping_names(row.get("toppings")),
        payment_method_raw=str(row.get("metodo_pago") or "efectivo"),
        status=normalize_status(row.get("estado")),
        origin=Origin.PERSISTED,
    )


# --------------------------------------------------------------------
# RawSaleRecord -> NormalizedSaleRecord
# --------------------------------------------------------------------


def make_dedup_key(
    machine_id: str,
    source_id: Optional[str],
    business_date: date,
    business_time: str,
    price_amount: Decimal,
) -> tuple:
    """Derive the de-duplication key for one sale.

    A source identifier scoped to the machine is preferred; otherwise the
    composite (machine, business date, business time, price) is used.
    """
    if source_id:
        return ("id", machine_id, source_id)
    return ("composite", machine_id, business_date.isoformat(), business_time, str(price_amount))


def normalize_record(raw: RawSaleRecord, converter: TimeZoneConverter) -> NormalizedSaleRecord:
    """Place a raw record on the business calendar and clean its fields.

    Raises:
        TimeConversionError: If the vendor date/time cannot be parsed.
    """
    business_date, business_time = converter.to_business(raw.vendor_date, raw.vendor_time)

    price = raw.price_amount
    if price is None or price < 0:
        logger.warning(
            "Negative or missing price on %s/%s, using 0.00", raw.machine_id, raw.source_id
        )
        price = ZERO
    units = raw.unit_count if raw.unit_count and raw.unit_count >= 1 else 1

    product_name, parsed_toppings = split_product(raw.product_descriptor)
    toppings = resolve_toppings(raw.toppings, parsed_toppings)

    return NormalizedSaleRecord(
        source_id=raw.source_id,
        machine_id=raw.machine_id,
        vendor_date=raw.vendor_date,
        vendor_time=raw.vendor_time,
        price_amount=price,
        unit_count=units,
        product_descriptor=raw.product_descriptor,
        toppings=raw.toppings,
        payment_method_raw=raw.payment_method_raw,
        status=raw.status,
        origin=raw.origin,
        business_date=business_date,
        business_time=business_time,
        product_name=product_name,
        topping_names=toppings,
        payment_category=normalize_payment_method(raw.payment_method_raw),
        dedup_key=make_dedup_key(raw.machine_id, raw.source_id, business_date, business_time, price),
    )


def normalize_records(
    raws: Iterable[RawSaleRecord],
    converter: TimeZoneConverter,
) -> list[NormalizedSaleRecord]:
    """Normalize many records; records whose timestamp cannot be converted are skipped.

    Skipped records are logged at warning level. They cannot be placed on the
    business calendar, so they cannot match any requested business date.
    """
    out: list[NormalizedSaleRecord] = []
    skipped = 0
    for raw in raws:
        try:
            out.append(normalize_record(raw, converter))
        except TimeConversionError as e:
            skipped += 1
            logger.warning(
                "Excluding sale %s on machine %s: %s", raw.source_id, raw.machine_id, e
            )
    if skipped:
        logger.info("Normalized %d record(s), excluded %d unplaceable", len(out), skipped)
    return out
