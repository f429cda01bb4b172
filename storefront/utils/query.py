# --- storefront/utils/query.py ---
"""
List-endpoint query builder shared by products, categories, subcategories
and brands.

Query params understood:
  field=value                 -> equality on a model column
  field[gt|gte|lt|lte|ne]=v   -> comparison
  field[in]=a,b,c             -> membership
  keyword=...                 -> ilike over the model's search columns
  sort=-price,title           -> comma-separated, '-' for descending
  fields=title,price          -> sparse field selection on the serialized rows
  page, limit                 -> pagination (limit capped at 100)

Columns passed as `hidden` are ignored by every filter and by sort.
"""
import re
from sqlalchemy import or_, asc, desc
from sqlalchemy.sql.sqltypes import Boolean, Integer, Numeric, Float, DateTime

from .parsing import parse_bool, parse_int
from .dates import parse_iso8601
from ..errors import ValidationError

RESERVED = {"page", "limit", "per_page", "sort", "fields", "keyword"}
_OP_RE = re.compile(r"^(?P<field>\w+)\[(?P<op>gt|gte|lt|lte|ne|in)\]$")
MAX_LIMIT = 100


def _coerce(column, raw):
    ctype = column.type
    try:
        if isinstance(ctype, Boolean):
            return parse_bool(raw)
        if isinstance(ctype, Integer):
            return int(raw)
        if isinstance(ctype, (Numeric, Float)):
            return float(raw)
        if isinstance(ctype, DateTime):
            value = parse_iso8601(raw)
            if value is None:
                raise ValueError(raw)
            return value
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid value for {column.key}: {raw}")
    return raw


class QueryBuilder:
    def __init__(self, model, args, search_fields=(), default_sort="-created_at", default_limit=12, hidden=()):
        self.model = model
        self.args = args
        self.search_fields = search_fields
        self.default_sort = default_sort
        self.default_limit = default_limit
        # hidden columns can be neither filtered nor sorted on
        self.columns = {c.key: c for c in model.__table__.columns if c.key not in hidden}
        self.query = model.query
        self.page = 1
        self.limit = default_limit

    def _column(self, name):
        return self.columns.get(name)

    def filter(self, exclude=()):
        for key, raw in self.args.items():
            if key in RESERVED or key in exclude or raw in (None, ""):
                continue
            m = _OP_RE.match(key)
            field, op = (m.group("field"), m.group("op")) if m else (key, "eq")
            column = self._column(field)
            if column is None:
                continue
            attr = getattr(self.model, field)
            if op == "in":
                values = [_coerce(column, v.strip()) for v in str(raw).split(",") if v.strip()]
                self.query = self.query.filter(attr.in_(values))
                continue
            value = _coerce(column, raw)
            if op == "eq":
                self.query = self.query.filter(attr == value)
            elif op == "ne":
                self.query = self.query.filter(attr != value)
            elif op == "gt":
                self.query = self.query.filter(attr > value)
            elif op == "gte":
                self.query = self.query.filter(attr >= value)
            elif op == "lt":
                self.query = self.query.filter(attr < value)
            elif op == "lte":
                self.query = self.query.filter(attr <= value)
        return self

    def where(self, *criteria):
        self.query = self.query.filter(*criteria)
        return self

    def search(self):
        keyword = (self.args.get("keyword") or "").strip()
        if keyword and self.search_fields:
            like = f"%{keyword}%"
            self.query = self.query.filter(
                or_(*[getattr(self.model, f).ilike(like) for f in self.search_fields])
            )
        return self

    def sort(self):
        raw = (self.args.get("sort") or self.default_sort or "").strip()
        clauses = []
        for token in [t.strip() for t in raw.split(",") if t.strip()]:
            descending = token.startswith("-")
            name = token.lstrip("-+")
            if name not in self.columns:
                continue
            attr = getattr(self.model, name)
            clauses.append(desc(attr) if descending else asc(attr))
        # stable order for equal keys
        clauses.append(desc(self.model.id))
        self.query = self.query.order_by(*clauses)
        return self

    def paginate(self):
        self.page = max(parse_int(self.args.get("page"), 1), 1)
        limit = self.args.get("limit") or self.args.get("per_page")
        self.limit = min(max(parse_int(limit, self.default_limit), 1), MAX_LIMIT)
        return self

    def fields(self):
        raw = (self.args.get("fields") or "").strip()
        if not raw:
            return None
        wanted = {f.strip() for f in raw.split(",") if f.strip()}
        wanted.add("id")
        return wanted

    def result(self, serialize=lambda row: row.as_api()):
        pagination = self.query.paginate(page=self.page, per_page=self.limit, error_out=False)
        wanted = self.fields()
        items = []
        for row in pagination.items:
            data = serialize(row)
            if wanted:
                data = {k: v for k, v in data.items() if k in wanted}
            items.append(data)
        return {
            "items": items,
            "meta": {
                "page": pagination.page,
                "pages": pagination.pages or 1,
                "limit": self.limit,
                "results": len(items),
                "total": pagination.total,
            },
        }

    def run(self, serialize=lambda row: row.as_api(), exclude=()):
        return self.filter(exclude=exclude).search().sort().paginate().result(serialize)
