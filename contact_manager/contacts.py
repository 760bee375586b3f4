"""Contact management routes for the Contact Manager API."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from . import schemas, crud
from .database import get_db
from .auth import get_current_user_id
from .core import get_settings
from .query import MAX_ROW_INDEX, ContactFilters, PageRequest

router = APIRouter(
    prefix="/contacts",
    tags=["contacts"],
    dependencies=[Depends(get_current_user_id)],
)
settings = get_settings()


@router.get("", response_model=schemas.ContactListResponse)
def list_contacts(
    search: str | None = Query(None),
    favorite: str | None = Query(None),
    tag: str | None = Query(None),
    page: int = Query(1, ge=1, le=MAX_ROW_INDEX),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """
    Retrieve one page of the current user's contacts.

    Args:
        search (str | None): Substring of name, phone, email or company.
        favorite (str | None): ``"true"`` to list favorites only.
        tag (str | None): Substring of the tags string.
        page (int): One-based page number.
        limit (int): Page size.
        db (Session): Database session.
        user_id (int): Authenticated user.

    Returns:
        ContactListResponse: Contacts plus pagination metadata.
    """
    result = crud.list_contacts(
        db,
        user_id,
        ContactFilters(search=search, favorite=favorite, tag=tag),
        PageRequest(page=page, limit=limit),
    )
    return schemas.ContactListResponse(
        contacts=[schemas.ContactOut.model_validate(c) for c in result.rows],
        pagination=result.pagination(),
    )


@router.get("/tags", response_model=schemas.TagsResponse)
def list_tags(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Return every distinct tag of the current user, sorted."""
    return schemas.TagsResponse(tags=crud.list_distinct_tags(db, user_id))


@router.get("/{contact_id}", response_model=schemas.ContactResponse)
def get_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """
    Retrieve a single contact by ID for the current user.

    Raises:
        NotFoundError: If contact is missing or not owned.
    """
    contact = crud.get_contact(db, contact_id, user_id)
    return schemas.ContactResponse(contact=schemas.ContactOut.model_validate(contact))


@router.post(
    "",
    response_model=schemas.ContactResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_contact(
    contact_in: schemas.ContactCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """
    Create a new contact owned by the current user.

    Args:
        contact_in (ContactCreate): Contact input data.
        db (Session): Database session.
        user_id (int): Authenticated user.

    Returns:
        ContactResponse: Created contact.
    """
    contact = crud.create_contact(db, contact_in, user_id)
    return schemas.ContactResponse(
        message="Contact created successfully",
        contact=schemas.ContactOut.model_validate(contact),
    )


@router.put("/{contact_id}", response_model=schemas.ContactResponse)
def update_contact(
    contact_id: int,
    contact_in: schemas.ContactUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """
    Replace every field of an existing contact.

    Raises:
        NotFoundError: If contact is missing or not owned.
    """
    contact = crud.update_contact(db, contact_id, user_id, contact_in)
    return schemas.ContactResponse(
        message="Contact updated successfully",
        contact=schemas.ContactOut.model_validate(contact),
    )


@router.delete("/{contact_id}", response_model=schemas.MessageResponse)
def remove_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Delete a contact owned by the current user."""
    crud.delete_contact(db, contact_id, user_id)
    return schemas.MessageResponse(message="Contact deleted successfully")


@router.patch("/{contact_id}/favorite", response_model=schemas.FavoriteResponse)
def toggle_favorite(
    contact_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Flip the favorite flag of a contact and return the new value."""
    is_favorite = crud.toggle_favorite(db, contact_id, user_id)
    verb = "added to" if is_favorite else "removed from"
    return schemas.FavoriteResponse(
        message=f"Contact {verb} favorites",
        is_favorite=is_favorite,
    )
