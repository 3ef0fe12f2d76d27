from typing import Optional

from storefront.core.logging_config import get_logger
from storefront.domain.models import Contact, ContactStatus
from storefront.domain.repository import Repository
from storefront.errors import NotFoundError
from .schemas import ContactCreate

logger = get_logger(__name__)


class ContactService:
    def __init__(self, repo: Repository):
        self.repo = repo

    def submit(self, data: ContactCreate) -> Contact:
        contact = Contact(**data.model_dump(), status=ContactStatus.NEW.value)
        with self.repo.transaction():
            self.repo.add_contact(contact)
        logger.info("Contact inquiry received", extra={"extra_fields": {"contact_id": contact.id}})
        return contact

    def list_contacts(self) -> list[Contact]:
        return self.repo.list_contacts()

    def update_status(self, contact_id: int, status: str, admin_notes: Optional[str] = None) -> Contact:
        fields = {"status": ContactStatus(status).value}
        if admin_notes is not None:
            fields["admin_notes"] = admin_notes
        with self.repo.transaction():
            contact = self.repo.update_contact(contact_id, fields)
            if contact is None:
                raise NotFoundError("Contact", contact_id)
        return contact
