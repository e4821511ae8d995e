"""
Query filter composition for paginated listings.

compose() turns a page request into a QuerySpec: the predicates shared by
the row query and the count query, the ordering and the window. It is
pure and never touches the database. fetch_page() applies a spec to a
select statement and returns the rows together with the exact total.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import Boolean, and_, func, literal, select, type_coerce
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select
from sqlalchemy.sql.expression import ColumnElement

from fleetgroups.core.errors import ErrorKind, store_error
from fleetgroups.schemas.pages import PageMetadata

ASC = "asc"
DESC = "desc"


@dataclass(frozen=True)
class PageColumns:
    """
    Columns a page request is evaluated against for one kind of entity.

    Filters whose column is None are not supported for that entity and
    are ignored. ``orders`` whitelists the sortable fields by name.
    """
    id: Any
    name: Any = None
    metadata: Any = None
    owner_id: Any = None
    org_id: Any = None
    orders: Dict[str, Any] = field(default_factory=dict)


@dataclass
class QuerySpec:
    predicates: List[Any]
    order_by: List[Any]
    order: str
    dir: str
    limit: Optional[int]
    offset: int
    empty: bool = False


class json_contains(ColumnElement):
    """
    ``column @> document``: the stored JSON document holds every key path
    of ``document`` with a value of the same JSON type.

    PostgreSQL renders the JSONB containment operator. Other engines get
    the same semantics from the JSON1 functions: objects match key by key
    and every element of a filter array must be present in the stored
    array.
    """
    type = Boolean()
    inherit_cache = False

    def __init__(self, column: Any, document: Dict[str, Any]):
        self.column = column
        self.document = document


@compiles(json_contains, "postgresql")
def _compile_jsonb_contains(element, compiler, **kw):
    expr = type_coerce(element.column, JSONB).contains(element.document)
    return compiler.process(expr, **kw)


@compiles(json_contains)
def _compile_json1_contains(element, compiler, **kw):
    expr = _json1_contains(element.column, "$", element.document)
    return "(%s)" % compiler.process(expr, **kw)


def _json1_contains(doc: Any, path: str, value: Any):
    json_type = func.json_type(doc, path)
    if isinstance(value, dict):
        return and_(json_type == "object",
                    *[_json1_contains(doc, _child_path(path, key), item)
                      for key, item in value.items()])
    if isinstance(value, list):
        return and_(json_type == "array",
                    *[_json1_has_element(doc, path, item) for item in value])
    return _json1_scalar(json_type, func.json_extract(doc, path), value)


def _json1_has_element(doc: Any, path: str, item: Any):
    elements = func.json_each(doc, path).table_valued("value", "type")
    if isinstance(item, (dict, list)):
        # Nested documents come back from json_each as JSON text
        match = _json1_contains(elements.c["value"], "$", item)
    else:
        match = _json1_scalar(elements.c["type"], elements.c["value"], item)
    return select(literal(1)).select_from(elements).where(match).exists()


def _json1_scalar(json_type: Any, extracted: Any, value: Any):
    if value is None:
        return json_type == "null"
    if isinstance(value, bool):
        return json_type == ("true" if value else "false")
    if isinstance(value, (int, float)):
        return and_(json_type.in_(("integer", "real")), extracted == value)
    return and_(json_type == "text", extracted == value)


def _child_path(path: str, key: Any) -> str:
    return '%s."%s"' % (path, key)


def metadata_predicates(column: Any, document: Dict[str, Any]) -> List[Any]:
    """
    Build a containment filter for a JSON metadata column.

    Raises a MalformedEntity error when the document can not be
    serialized as JSON.
    """
    try:
        json.dumps(document)
    except (TypeError, ValueError) as e:
        raise store_error(ErrorKind.MALFORMED_ENTITY, cause=e,
                          message="failed to create query for metadata")

    return [json_contains(column, document)]


def compose(columns: PageColumns, pm: PageMetadata) -> QuerySpec:
    """Build the predicates, ordering and window described by a page request."""
    predicates = []

    if pm.name and columns.name is not None:
        predicates.append(columns.name.ilike(f"%{pm.name}%"))

    if pm.metadata and columns.metadata is not None:
        predicates.extend(metadata_predicates(columns.metadata, pm.metadata))

    if pm.ids is not None:
        predicates.append(columns.id.in_(pm.ids))

    if pm.owner_id and columns.owner_id is not None:
        predicates.append(columns.owner_id == pm.owner_id)

    if pm.org_id and columns.org_id is not None:
        predicates.append(columns.org_id == pm.org_id)

    order = pm.order if pm.order in columns.orders else "id"
    direction = DESC if pm.dir == DESC else ASC

    sort_column = columns.orders.get(order, columns.id)
    order_by = [sort_column.desc() if direction == DESC else sort_column.asc()]
    if sort_column is not columns.id:
        # Tie-break on id so equal sort keys keep a stable order
        order_by.append(columns.id.desc() if direction == DESC else columns.id.asc())

    return QuerySpec(
        predicates=predicates,
        order_by=order_by,
        order=order,
        dir=direction,
        limit=pm.limit or None,
        offset=pm.offset,
        empty=pm.ids is not None and len(pm.ids) == 0,
    )


def fetch_page(db: Session, stmt: Select, spec: QuerySpec,
               scalars: bool = True) -> Tuple[Sequence[Any], int]:
    """
    Run the row query and the count query for a spec.

    Both queries share the same predicates, so the total counts the
    whole filtered set regardless of the window.
    """
    if spec.empty:
        return [], 0

    filtered = stmt.where(*spec.predicates)

    count_stmt = select(func.count()).select_from(filtered.order_by(None).subquery())
    total = db.execute(count_stmt).scalar_one()

    page_stmt = filtered.order_by(*spec.order_by).offset(spec.offset)
    if spec.limit is not None:
        page_stmt = page_stmt.limit(spec.limit)

    result = db.execute(page_stmt)
    rows = result.scalars().all() if scalars else result.all()
    return rows, total
