"""Search, filter and pagination query building for contact listings.

The listing endpoint needs two statements: one fetching a page of rows
and one counting every matching row. Both are built from the same list
of conditions so the reported total always agrees with the rows a
client can page through.
"""

import math
from dataclasses import dataclass

from sqlalchemy import Select, and_, func, or_, select, true

from . import models
from .errors import ValidationError


@dataclass(frozen=True)
class ContactFilters:
    """Optional listing filters.

    Attributes:
        search: Case-insensitive substring matched against name, phone,
            email and company.
        favorite: Only favorites when ``True`` or the string ``"true"``.
        tag: Case-insensitive substring matched against the raw tags
            string. A tag that is part of a longer tag also matches it.
    """

    search: str | None = None
    favorite: bool | str | None = None
    tag: str | None = None

    @property
    def search_term(self) -> str | None:
        term = (self.search or "").strip()
        return term or None

    @property
    def tag_term(self) -> str | None:
        term = (self.tag or "").strip()
        return term or None

    @property
    def favorites_only(self) -> bool:
        return self.favorite is True or self.favorite == "true"


# Largest value a LIMIT or OFFSET may take in a signed 64-bit column
MAX_ROW_INDEX = 2**63 - 1


@dataclass(frozen=True)
class PageRequest:
    """One-based page number and page size."""

    page: int = 1
    limit: int = 50

    def __post_init__(self):
        for name in ("page", "limit"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValidationError(f"{name} must be a positive integer")
        if self.offset + self.limit > MAX_ROW_INDEX:
            raise ValidationError("page is out of range")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def contact_conditions(owner_id: int, filters: ContactFilters) -> list:
    """
    Build the WHERE conditions shared by the data and count queries.

    Args:
        owner_id (int): Requesting user; always restricts the result.
        filters (ContactFilters): Optional filters to conjoin.

    Returns:
        list: SQLAlchemy boolean clauses to be AND-ed together.
    """
    Contact = models.Contact
    conditions = [Contact.owner_id == owner_id]

    term = filters.search_term
    if term is not None:
        conditions.append(
            or_(
                Contact.name.icontains(term, autoescape=True),
                Contact.phone.icontains(term, autoescape=True),
                Contact.email.icontains(term, autoescape=True),
                Contact.company.icontains(term, autoescape=True),
            )
        )

    if filters.favorites_only:
        conditions.append(Contact.is_favorite == true())

    tag = filters.tag_term
    if tag is not None:
        conditions.append(Contact.tags.icontains(tag, autoescape=True))

    return conditions


def build_contact_queries(
    owner_id: int, filters: ContactFilters, page: PageRequest
) -> tuple[Select, Select]:
    """
    Build the page query and the matching count query.

    Rows come newest first; contacts created in the same instant are
    ordered by descending id so paging is stable.

    Args:
        owner_id (int): Requesting user.
        filters (ContactFilters): Listing filters.
        page (PageRequest): Page to fetch.

    Returns:
        tuple[Select, Select]: ``(data_stmt, count_stmt)``.
    """
    Contact = models.Contact
    where = and_(*contact_conditions(owner_id, filters))

    data_stmt = (
        select(Contact)
        .where(where)
        .order_by(Contact.created_at.desc(), Contact.id.desc())
        .limit(page.limit)
        .offset(page.offset)
    )
    count_stmt = select(func.count(Contact.id)).where(where)
    return data_stmt, count_stmt


def total_pages(total: int, limit: int) -> int:
    """Number of pages for ``total`` rows; an empty result still has one."""
    return max(1, math.ceil(total / limit))
