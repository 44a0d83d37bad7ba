"""
QA Portal
Blueprint registry and shared list pagination.
"""

from flask import jsonify, request


def _page_params(default_limit, max_limit):
    try:
        limit = min(max(int(request.args.get("limit", default_limit)), 1), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return limit, offset


def paginate_query(query, default_limit=100, max_limit=1000):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit  — max items (default 100, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_list, total_count, limit, offset)
    """
    total = query.count()
    limit, offset = _page_params(default_limit, max_limit)
    items = query.limit(limit).offset(offset).all()
    return items, total, limit, offset


def paginated_response(query, serialize=None, **kwargs):
    """``{"success": true, "data": [...], "pagination": {total, limit, offset}}``."""
    items, total, limit, offset = paginate_query(query, **kwargs)
    serialize = serialize or (lambda obj: obj.to_dict())
    return jsonify({
        "success": True,
        "data": [serialize(obj) for obj in items],
        "pagination": {"total": total, "limit": limit, "offset": offset},
    })

