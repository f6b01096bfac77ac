# Overview: Localized user-facing messages for stocktake errors.

from __future__ import annotations

from .errors import ApprovalBlocked, InventorySessionError, SessionAlreadyApproved


SUPPORTED_LOCALES = ("en", "pl")

MESSAGES = {
    "en": {
        "PERMISSION_DENIED": "You do not have access to stocktakes.",
        "SESSION_NOT_FOUND": "Stocktake not found.",
        "SESSION_ITEM_NOT_FOUND": "This material is not on the stocktake.",
        "SESSION_ALREADY_APPROVED:APPROVED": "This stocktake is already approved and can no longer be changed.",
        "SESSION_ALREADY_APPROVED:DELETED": "This stocktake was deleted.",
        "INVALID_LOCATION": "Choose an existing storage location.",
        "INVALID_SESSION_DATE": "Enter the date as YYYY-MM-DD.",
        "MATERIAL_NOT_ELIGIBLE": "This material cannot be added: it was deleted or belongs to another location.",
        "INVALID_QUANTITY": "Counted quantity cannot be negative.",
        "APPROVAL_BLOCKED:NOT_DRAFT": "Only a draft stocktake can be approved.",
        "APPROVAL_BLOCKED:EMPTY_SESSION": "Add at least one material before approving.",
        "APPROVAL_BLOCKED:MISSING_COUNTS": "Enter a counted quantity for every material ({missing_count} missing).",
        "STORE_FAILURE": "The operation failed, try again.",
        "INVENTORY_ERROR": "The operation failed, try again.",
    },
    "pl": {
        "PERMISSION_DENIED": "Brak uprawnień do inwentaryzacji.",
        "SESSION_NOT_FOUND": "Nie znaleziono inwentaryzacji.",
        "SESSION_ITEM_NOT_FOUND": "Tego materiału nie ma w inwentaryzacji.",
        "SESSION_ALREADY_APPROVED:APPROVED": "Inwentaryzacja jest już zatwierdzona i nie można jej zmieniać.",
        "SESSION_ALREADY_APPROVED:DELETED": "Inwentaryzacja została usunięta.",
        "INVALID_LOCATION": "Wybierz istniejącą lokalizację magazynu.",
        "INVALID_SESSION_DATE": "Podaj datę w formacie RRRR-MM-DD.",
        "MATERIAL_NOT_ELIGIBLE": "Nie można dodać materiału: został usunięty lub należy do innej lokalizacji.",
        "INVALID_QUANTITY": "Policzona ilość nie może być ujemna.",
        "APPROVAL_BLOCKED:NOT_DRAFT": "Zatwierdzić można tylko szkic inwentaryzacji.",
        "APPROVAL_BLOCKED:EMPTY_SESSION": "Dodaj co najmniej jeden materiał przed zatwierdzeniem.",
        "APPROVAL_BLOCKED:MISSING_COUNTS": "Uzupełnij policzoną ilość dla każdego materiału (brakuje: {missing_count}).",
        "STORE_FAILURE": "Nie udało się wykonać operacji, spróbuj ponownie.",
        "INVENTORY_ERROR": "Nie udało się wykonać operacji, spróbuj ponownie.",
    },
}


def _message_key(error: InventorySessionError) -> str:
    if isinstance(error, SessionAlreadyApproved):
        return f"{error.code}:{error.state}"
    if isinstance(error, ApprovalBlocked):
        return f"{error.code}:{error.reason}"
    return error.code


def user_message(error: InventorySessionError, locale: str | None = None) -> str:
    """Message safe to show to the user, in the requested locale (fallback: en)."""
    catalog = MESSAGES.get(locale or "en", MESSAGES["en"])
    template = catalog.get(_message_key(error)) or catalog.get(error.code) or catalog["INVENTORY_ERROR"]
    return template.format(**error.details)
