from sqlalchemy.orm import Query, Session


def _named_index(model, index_name: str):
    # index names are schema-wide, so tables declare them as ix_<table>_<name>
    physical = f"ix_{model.__tablename__}_{index_name}"
    for index in model.__table__.indexes:
        if index.name == physical:
            return index
    raise ValueError(f"{model.__tablename__} has no index named {index_name!r}")


def query_index(db: Session, model, index_name: str, order: str = "asc", **equals) -> Query:
    """Equality scan over a named index, ordered by the index columns not pinned by ``equals``.

    Predicates must cover a prefix of the index columns, the same way a
    composite index can only be walked from the left.  The primary key breaks
    ties so rows created within the same clock tick keep a stable order.
    """
    if order not in ("asc", "desc"):
        raise ValueError(f"order must be 'asc' or 'desc', got {order!r}")

    index = _named_index(model, index_name)
    columns = list(index.columns)
    prefix = [column.name for column in columns[: len(equals)]]
    if sorted(prefix) != sorted(equals):
        raise ValueError(
            f"predicates {sorted(equals)} are not a prefix of index {index_name!r} {[c.name for c in columns]}"
        )

    query = db.query(model)
    for name, value in equals.items():
        query = query.filter(model.__table__.c[name] == value)

    ordering = columns[len(equals):] + list(model.__table__.primary_key.columns)
    for column in ordering:
        query = query.order_by(column.desc() if order == "desc" else column.asc())
    return query
