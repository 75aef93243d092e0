# app/routers/addresses.py
import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlmodel import Session

from app.core.auth import require_user
from app.database import get_session
from app.models.user import User
from app.repositories.address_repo import AddressRepository
from app.schemas.address import (
    AddressCreate,
    AddressFormState,
    AddressRead,
    AddressUpdate,
    LocationAutofillRequest,
    LocationAutofillResult,
)
from app.services.address_service import AddressService

router = APIRouter(prefix="/addresses", tags=["Addresses"])

address_repo = AddressRepository()
service = AddressService(address_repo)


@router.get("", response_model=list[AddressRead])
def list_my_addresses(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Saved addresses, default first.
    """
    return service.list_addresses(session, current_user.id)


@router.post("", response_model=AddressRead, status_code=status.HTTP_201_CREATED)
def create_address(
    payload: AddressCreate,
    response: Response,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Save an address.

    - 201 with the new address
    - 200 with the existing one when (address, pincode) is already saved
    - 400 with {"fields": {...}} when fields are invalid
    """
    address, created = service.create_address(session, current_user.id, payload)
    if not created:
        response.status_code = status.HTTP_200_OK
    return address


@router.get("/{address_id}", response_model=AddressRead)
def get_address(
    address_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.get_address(session, current_user.id, address_id)


@router.patch("/{address_id}", response_model=AddressRead)
def update_address(
    address_id: uuid.UUID,
    payload: AddressUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.update_address(session, current_user.id, address_id, payload)


@router.delete("/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_address(
    address_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    service.delete_address(session, current_user.id, address_id)


@router.post("/{address_id}/default", response_model=list[AddressRead])
def set_default_address(
    address_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Make this the default address. Returns the updated list.
    """
    return service.set_default_address(session, current_user.id, address_id)


@router.post("/autofill/pincode", response_model=AddressFormState)
def autofill_from_pincode(
    form: AddressFormState,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Fill city/state from a 6-digit PIN code, or set the pincode error.
    """
    return service.autofill_from_pincode(session, form)


@router.post("/autofill/location", response_model=LocationAutofillResult)
async def autofill_from_location(
    payload: LocationAutofillRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Fill the form from device coordinates, or explain a geolocation error.
    """
    return await service.autofill_from_location(session, payload)
