"""
Generic read helpers shared by the ledger and device tracking services.

Ledger rows change through explicit lifecycle operations and are never
deleted, so only tenant-scoped lookups live here.
"""

from typing import Any, Dict, List, Optional, Type, TypeVar

from sqlalchemy.orm import Session

T = TypeVar("T")


def _apply_filters(query, model_class, filters: Optional[Dict[str, Any]], tenant_id: Optional[str]):
    if tenant_id and hasattr(model_class, "tenant_id"):
        query = query.filter(model_class.tenant_id == tenant_id)  # type: ignore[attr-defined]

    for key, value in (filters or {}).items():
        if not hasattr(model_class, key) or value is None:
            continue
        column = getattr(model_class, key)
        if isinstance(value, (list, tuple, set, frozenset)):
            query = query.filter(column.in_(list(value)))
        else:
            query = query.filter(column == value)
    return query


def get_record(
    session: Session, model_class: Type[T], filters: Dict[str, Any], tenant_id: Optional[str] = None
) -> Optional[T]:
    """
    Generic get operation for any model.

    Returns:
        First matching record or None
    """
    query = _apply_filters(session.query(model_class), model_class, filters, tenant_id)
    return query.first()


def list_records(
    session: Session,
    model_class: Type[T],
    filters: Optional[Dict[str, Any]] = None,
    tenant_id: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    order_by: Optional[str] = None,
) -> List[T]:
    """
    Generic list operation for any model.

    List and tuple filter values become ``IN`` clauses. Results are ordered
    by ``order_by`` when given, else newest first when the model has
    ``created_at``.
    """
    query = _apply_filters(session.query(model_class), model_class, filters, tenant_id)

    if order_by and hasattr(model_class, order_by):
        query = query.order_by(getattr(model_class, order_by))
    elif hasattr(model_class, "created_at"):
        query = query.order_by(model_class.created_at.desc())  # type: ignore[attr-defined]

    if offset:
        query = query.offset(offset)
    if limit:
        query = query.limit(limit)

    return query.all()


