from typing import Iterable, List, Set

from .schemas import FieldCreate, FieldKind, FieldValue, SigningSession


def _has_value(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def required_fields_for(session: SigningSession, signer_email: str) -> Set[str]:
    return {f.id for f in session.fields if f.required and f.signer_email == signer_email}


def provided_field_ids(values: Iterable[FieldValue]) -> Set[str]:
    return {v.field_id for v in values if _has_value(v.value) or _has_value(v.signature_image)}


def missing(required: Set[str], provided: Set[str]) -> Set[str]:
    return set(required) - set(provided)


def apply(session: SigningSession, values: Iterable[FieldValue], signer_email: str) -> List[str]:
    """Write submitted values onto the signer's own fields.

    Ids that are unknown, or that belong to another signer, are skipped.
    Returns the ids that were written.
    """
    field_map = {f.id: f for f in session.fields if f.signer_email == signer_email}
    written = []
    for v in values:
        field = field_map.get(v.field_id)
        if not field:
            continue
        field.value = v.value
        field.signature_image = v.signature_image
        written.append(field.id)
    return written


# Placements for the documents the service sends most often.
_STANDARD_LAYOUTS = {
    "credit_auth": [
        (FieldKind.SIGNATURE, "Borrower Signature", 100, 500, 200, 50),
        (FieldKind.DATE, "Date", 350, 500, 100, 30),
    ],
    "broker_agreement": [
        (FieldKind.SIGNATURE, "Borrower Signature", 100, 600, 200, 50),
        (FieldKind.SIGNATURE, "Broker Signature", 100, 700, 200, 50),
    ],
    "financial_statement": [
        (FieldKind.SIGNATURE, "Borrower Signature", 100, 800, 200, 50),
        (FieldKind.DATE, "Date", 350, 800, 100, 30),
    ],
}

STANDARD_DOCUMENT_TYPES = tuple(_STANDARD_LAYOUTS)


def standard_fields(document_type: str, signer_email: str = "") -> List[FieldCreate]:
    return [
        FieldCreate(
            kind=kind,
            label=label,
            required=True,
            page=1,
            x=x,
            y=y,
            width=w,
            height=h,
            signer_email=signer_email,
        )
        for kind, label, x, y, w, h in _STANDARD_LAYOUTS.get(document_type, [])
    ]
