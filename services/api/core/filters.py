"""
Query-string filters for full-sheet reads.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

# query parameter -> record field
QUERY_FILTERS: Dict[str, str] = {
    "bookingId": "booking_id",
    "eventId": "event_id",
    "ticketId": "ticket_id",
    "ticketQuantity": "ticket_quantity",
    "ticketPrice": "ticket_price",
    "packageId": "package_id",
    "hotelId": "hotel_id",
    "roomId": "room_id",
    "roomCheckIn": "room_check_in",
    "roomCheckOut": "room_check_out",
    "roomQuantity": "room_quantity",
    "roomPrice": "room_price",
    "airportTransferId": "airport_transfer_id",
    "airportTransferQuantity": "airport_transfer_quantity",
    "airportTransferPrice": "airport_transfer_price",
    "circuitTransferId": "circuit_transfer_id",
    "circuitTransferQuantity": "circuit_transfer_quantity",
    "circuitTransferPrice": "circuit_transfer_price",
    "flightId": "flight_id",
    "flightBookingReference": "flight_booking_reference",
    "ticketingDeadline": "ticketing_deadline",
    "flightStatus": "flight_status",
    "flightPrice": "flight_price",
    "loungePassId": "lounge_pass_id",
    "loungePassQuantity": "lounge_pass_quantity",
    "loungePassPrice": "lounge_pass_price",
    "bookerName": "booker_name",
    "bookerEmail": "booker_email",
    "bookerPhone": "booker_phone",
    "bookerAddress": "booker_address",
    "leadTravellerName": "lead_traveller_name",
    "leadTravellerEmail": "lead_traveller_email",
    "leadTravellerPhone": "lead_traveller_phone",
    "bookingDate": "booking_date",
    "aquisition": "acquisition",
    "atolAbtot": "atol_abtot",
    "paymentCurrency": "payment_currency",
    "payment1": "payment_1",
    "payment1Status": "payment_1_status",
    "payment1Date": "payment_1_date",
    "payment2": "payment_2",
    "payment2Status": "payment_2_status",
    "payment2Date": "payment_2_date",
    "payment3": "payment_3",
    "payment3Status": "payment_3_status",
    "payment3Date": "payment_3_date",
}

# cells holding comma-separated id lists
MULTI_VALUE_FILTERS = {"packageId"}


def cell_text(value: Any) -> str:
    """String form of a decoded value, matching how the sheet displays it."""
    if value is True:
        return "TRUE"
    if value is False:
        return "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _matches(record: Mapping[str, Any], field: str, wanted: str, multi: bool) -> bool:
    cell = record.get(field)
    if cell is None or cell == "":
        return False
    if multi:
        return wanted in [part.strip() for part in cell_text(cell).split(",")]
    return cell_text(cell) == wanted


def apply_filters(records: Iterable[Mapping[str, Any]], query: Mapping[str, str]) -> List[Dict[str, Any]]:
    """Keep records matching every known, non-empty query parameter."""
    out = [dict(r) for r in records]
    for key, field in QUERY_FILTERS.items():
        wanted = query.get(key)
        if not wanted:
            continue
        multi = key in MULTI_VALUE_FILTERS
        out = [r for r in out if _matches(r, field, wanted, multi)]
    return out
