from fastapi import APIRouter, Depends, Response

from storefront.api.deps import get_repository
from storefront.api.security import Capability, requires
from storefront.application.contacts import ContactService
from storefront.application.export import contacts_to_csv, export_filename
from storefront.application.schemas import ContactCreate, ContactRead, ContactStatusUpdate
from storefront.domain.repository import Repository

router = APIRouter(prefix="/contact", tags=["contact"])
admin_router = APIRouter(
    prefix="/admin/contacts",
    tags=["admin"],
    dependencies=[Depends(requires(Capability.MANAGE_CONTACTS))],
)


@router.post("/", status_code=201)
def submit_contact(payload: ContactCreate, repo: Repository = Depends(get_repository)):
    contact = ContactService(repo).submit(payload)
    return {"success": True, "id": contact.id}


@admin_router.get("/", response_model=list[ContactRead])
def list_contacts(repo: Repository = Depends(get_repository)):
    return ContactService(repo).list_contacts()


@admin_router.get("/export", dependencies=[Depends(requires(Capability.EXPORT_DATA))])
def export_contacts(repo: Repository = Depends(get_repository)):
    return Response(
        content=contacts_to_csv(ContactService(repo).list_contacts()),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={export_filename('contacts')}"},
    )


@admin_router.put("/{contact_id}/status", response_model=ContactRead)
def update_contact_status(contact_id: int, payload: ContactStatusUpdate, repo: Repository = Depends(get_repository)):
    return ContactService(repo).update_status(contact_id, payload.status.value, payload.admin_notes)
