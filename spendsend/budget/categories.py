"""
Category resolution for classified transactions.

The front end hands over a free-text category label. Labels are matched
case-insensitively against the user's own categories and the shared
defaults; an unknown label becomes a new discretionary category.
"""

from typing import Optional
from uuid import UUID

from spendsend.audit import AuditLogger
from spendsend.budget.errors import BudgetValidationError
from spendsend.models import Category, CategoryType
from spendsend.services.storage import CategoryStorageInterface, DuplicateError


class CategoryResolver:
    """Maps category labels to stored categories."""

    def __init__(
        self,
        storage: CategoryStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()

    async def resolve_or_create_category(
        self,
        label: str,
        user_id: str,
        category_type: CategoryType = CategoryType.DISCRETIONARY,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        """
        Find the category named label, creating it if absent.

        New categories are discretionary unless category_type says otherwise.
        An existing category keeps its stored type.

        Raises:
            BudgetValidationError: If the label is empty
        """
        name = (label or "").strip()
        if not name:
            raise BudgetValidationError("Category label is required")

        existing = await self._storage.get_category_by_name(name, user_id)
        if existing is not None:
            return existing

        category = Category(
            user_id=user_id,
            name=name,
            category_type=category_type,
        )
        try:
            created = await self._storage.create_category(category)
        except DuplicateError:
            # Created concurrently under the same name
            existing = await self._storage.get_category_by_name(name, user_id)
            if existing is None:
                raise
            return existing

        await self._audit.log_category_created(
            category_id=created.id,
            name=created.name,
            category_type=created.category_type.value,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        return created

    async def list_categories(
        self,
        user_id: Optional[str] = None,
        category_type: Optional[CategoryType] = None,
    ) -> list[Category]:
        return await self._storage.list_categories(user_id, category_type)
