"""CRUD operations for users and contacts.

This module contains database interaction logic for user and contact
entities, isolated from FastAPI route handlers. Every contact operation
is scoped by ``(contact_id, owner_id)``; a contact owned by someone else
is reported exactly like a missing one.

Storage failures are rolled back, logged and re-raised as
:class:`~contact_manager.errors.InternalError` with a generic message.
Nothing is retried.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import select, update, not_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, schemas
from .errors import ConflictError, InternalError, NotFoundError
from .query import ContactFilters, PageRequest, build_contact_queries, total_pages


logger = logging.getLogger(__name__)

CONTACT_NOT_FOUND = "Contact not found"


@contextmanager
def storage_errors(db: Session, message: str):
    """Map SQLAlchemy failures inside the block onto ``InternalError``."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s", message)
        raise InternalError(message) from exc


@dataclass
class ContactPage:
    """One page of a contact listing plus paging metadata."""

    rows: list
    page: int
    limit: int
    total: int
    total_pages: int

    def pagination(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
        }


def _blank_to_none(value: str | None) -> str | None:
    # Empty optional strings are stored as NULL
    return value or None


def _contact_values(contact_in: schemas.ContactBase) -> dict:
    """Column values for a create or full update, defaults made explicit."""
    return {
        "name": contact_in.name,
        "phone": contact_in.phone,
        "email": contact_in.email,
        "company": _blank_to_none(contact_in.company),
        "tags": _blank_to_none(contact_in.tags),
        "notes": _blank_to_none(contact_in.notes),
        "is_favorite": bool(contact_in.is_favorite),
    }


def create_user(db: Session, email: str, hashed_password: str) -> models.User:
    """
    Create and persist a new user.

    Args:
        db (Session): SQLAlchemy database session.
        email (str): Email address; stored lower-cased.
        hashed_password (str): Securely hashed password.

    Raises:
        ConflictError: If a user with the same email already exists.

    Returns:
        User: Newly created user instance.
    """
    email = email.strip().lower()
    with storage_errors(db, "Server error during registration"):
        if get_user_by_email(db, email) is not None:
            raise ConflictError("User already exists with this email")

        user = models.User(email=email, hashed_password=hashed_password)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # lost a race against a concurrent registration
            db.rollback()
            raise ConflictError("User already exists with this email")
        db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def get_user_by_email(db: Session, email: str) -> models.User | None:
    """
    Retrieve a user by email address.

    Args:
        db (Session): Database session.
        email (str): User email, compared case-insensitively.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    return db.execute(
        select(models.User).where(models.User.email == email.strip().lower())
    ).scalar_one_or_none()


def get_user_by_id(db: Session, user_id: int) -> models.User | None:
    """
    Retrieve a user by primary key.

    Args:
        db (Session): Database session.
        user_id (int): User identifier.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    return db.execute(
        select(models.User).where(models.User.id == user_id)
    ).scalar_one_or_none()


def _find_contact(db: Session, contact_id: int, owner_id: int) -> models.Contact | None:
    return db.execute(
        select(models.Contact).where(
            models.Contact.id == contact_id,
            models.Contact.owner_id == owner_id,
        )
    ).scalar_one_or_none()


def create_contact(
    db: Session, contact_in: schemas.ContactCreate, owner_id: int
) -> models.Contact:
    """
    Create a new contact owned by the given user.

    Required fields are validated by ``ContactCreate`` before this is
    called. Empty optional strings are stored as NULL and a missing
    favorite flag as ``False``.

    Args:
        db (Session): Database session.
        contact_in (ContactCreate): Contact data.
        owner_id (int): Owner of the contact.

    Returns:
        Contact: Newly created contact, including id and ``created_at``.
    """
    with storage_errors(db, "Server error while creating contact"):
        contact = models.Contact(**_contact_values(contact_in), owner_id=owner_id)
        db.add(contact)
        db.commit()
        db.refresh(contact)
    return contact


def get_contact(db: Session, contact_id: int, owner_id: int) -> models.Contact:
    """
    Retrieve a single contact owned by the given user.

    Args:
        db (Session): Database session.
        contact_id (int): Contact identifier.
        owner_id (int): Contact owner.

    Raises:
        NotFoundError: If the contact is missing or owned by someone else.

    Returns:
        Contact: The stored contact.
    """
    with storage_errors(db, "Server error while fetching contact"):
        contact = _find_contact(db, contact_id, owner_id)
    if contact is None:
        raise NotFoundError(CONTACT_NOT_FOUND)
    return contact


def list_contacts(
    db: Session,
    owner_id: int,
    filters: ContactFilters | None = None,
    page: PageRequest | None = None,
) -> ContactPage:
    """
    Retrieve one page of the user's contacts.

    Args:
        db (Session): Database session.
        owner_id (int): Contact owner.
        filters (ContactFilters | None): Search, favorite and tag filters.
        page (PageRequest | None): Page number and size.

    Raises:
        InternalError: If either query fails; no partial page is returned.

    Returns:
        ContactPage: Rows plus paging metadata.
    """
    filters = filters or ContactFilters()
    page = page or PageRequest()
    data_stmt, count_stmt = build_contact_queries(owner_id, filters, page)
    with storage_errors(db, "Could not fetch contacts"):
        rows = list(db.scalars(data_stmt).all())
        total = db.execute(count_stmt).scalar_one()
    return ContactPage(
        rows=rows,
        page=page.page,
        limit=page.limit,
        total=total,
        total_pages=total_pages(total, page.limit),
    )


def update_contact(
    db: Session, contact_id: int, owner_id: int, contact_in: schemas.ContactUpdate
) -> models.Contact:
    """
    Replace the mutable fields of a contact.

    Args:
        db (Session): Database session.
        contact_id (int): Contact identifier.
        owner_id (int): Contact owner.
        contact_in (ContactUpdate): New field values.

    Raises:
        NotFoundError: If the contact is missing or owned by someone else;
            nothing is written in that case.

    Returns:
        Contact: Updated contact.
    """
    with storage_errors(db, "Server error while updating contact"):
        contact = _find_contact(db, contact_id, owner_id)
        if contact is None:
            raise NotFoundError(CONTACT_NOT_FOUND)
        for key, value in _contact_values(contact_in).items():
            setattr(contact, key, value)
        db.add(contact)
        db.commit()
        db.refresh(contact)
    return contact


def delete_contact(db: Session, contact_id: int, owner_id: int):
    """
    Delete a contact from the database.

    Args:
        db (Session): Database session.
        contact_id (int): Contact identifier.
        owner_id (int): Contact owner.

    Raises:
        NotFoundError: If the contact is missing or owned by someone else.
    """
    with storage_errors(db, "Server error while deleting contact"):
        contact = _find_contact(db, contact_id, owner_id)
        if contact is None:
            raise NotFoundError(CONTACT_NOT_FOUND)
        db.delete(contact)
        db.commit()
    return None


def toggle_favorite(db: Session, contact_id: int, owner_id: int) -> bool:
    """
    Flip the favorite flag of a contact.

    The flip is a single ``UPDATE ... SET is_favorite = NOT is_favorite``
    so concurrent toggles cannot read the same prior value.

    Args:
        db (Session): Database session.
        contact_id (int): Contact identifier.
        owner_id (int): Contact owner.

    Raises:
        NotFoundError: If the contact is missing or owned by someone else.

    Returns:
        bool: The new favorite flag.
    """
    where = (
        models.Contact.id == contact_id,
        models.Contact.owner_id == owner_id,
    )
    with storage_errors(db, "Server error while toggling favorite"):
        result = db.execute(
            update(models.Contact)
            .where(*where)
            .values(is_favorite=not_(models.Contact.is_favorite))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.rollback()
            raise NotFoundError(CONTACT_NOT_FOUND)
        db.commit()
        # refresh any copy of the row already held by this session
        contact = db.get(models.Contact, contact_id, populate_existing=True)
    if contact is None:
        # deleted by another request after the flip
        raise NotFoundError(CONTACT_NOT_FOUND)
    return bool(contact.is_favorite)


def split_tags(raw: str | None) -> list[str]:
    """Split a comma separated tags string into trimmed, non-empty tags."""
    if not raw:
        return []
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def list_distinct_tags(db: Session, owner_id: int) -> list[str]:
    """
    Collect every distinct tag used across the user's contacts.

    This scans all of the owner's tagged contacts; there is no tag index.

    Args:
        db (Session): Database session.
        owner_id (int): Contact owner.

    Returns:
        list[str]: Sorted, de-duplicated tags.
    """
    with storage_errors(db, "Server error while fetching tags"):
        raw_tags = db.scalars(
            select(models.Contact.tags).where(
                models.Contact.owner_id == owner_id,
                models.Contact.tags.is_not(None),
                models.Contact.tags != "",
            )
        ).all()
    tags: set[str] = set()
    for raw in raw_tags:
        tags.update(split_tags(raw))
    return sorted(tags)
