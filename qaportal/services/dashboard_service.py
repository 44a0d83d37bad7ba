"""
Dashboard Service — aggregate KPIs for projects, test cases and defects.

All status / severity / priority values are normalised to snake_case keys
(``In Progress`` → ``in_progress``) before counting, so free-text values
from spreadsheet imports group together with API-entered ones.
"""

import logging
import re
from datetime import datetime, timezone

from qaportal.models import db, iso
from qaportal.models.auth import User
from qaportal.models.project import PROJECT_STATUSES, Project
from qaportal.models.testing import Defect, DefectFile, TestCase, TestCaseFile

logger = logging.getLogger(__name__)

SEVERITY_WEIGHTS = {
    "highest": 4,
    "critical": 4,
    "high": 3,
    "medium": 2,
    "low": 1,
    "none": 0,
    "unknown": 0,
}

RESOLVED_STATUSES = ("resolved", "closed")
OPEN_STATUSES = ("open", "in_progress")
REOPENED_STATUSES = ("reopened", "re_opened")
DEFERRED_STATUSES = ("deferred",)
REJECTED_STATUSES = ("rejected", "invalid")
IN_PROGRESS_STATUSES = ("in_progress",)

PASS_STATUSES = ("pass", "passed", "success")
FAIL_STATUSES = ("fail", "failed")
BLOCKED_STATUSES = ("blocked",)
ON_HOLD_STATUSES = ("on_hold", "hold")
NOT_EXECUTED_STATUSES = ("not_executed", "not_run", "pending")
NOT_APPLICABLE_STATUSES = ("not_applicable", "na")

_SEPARATORS = re.compile(r"[\s-]+")


# ── Key helpers ──────────────────────────────────────────────────────────────

def normalize_key(value) -> str:
    if value is None:
        return "unknown"
    return _SEPARATORS.sub("_", str(value).strip().lower())


def humanize(key: str) -> str:
    if key == "unknown":
        return "Unknown"
    return " ".join(part[:1].upper() + part[1:] for part in key.split("_"))


def pick_counts(counts: dict, keys) -> int:
    return sum(counts.get(k, 0) for k in keys)


def make_distribution(counts: dict) -> list[dict]:
    return [
        {"key": key, "label": humanize(key), "value": value}
        for key, value in counts.items()
        if value > 0
    ]


def _count_map(query, column) -> dict:
    counts: dict[str, int] = {}
    for value, n in query.with_entities(column, db.func.count()).group_by(column).all():
        key = normalize_key(value)
        counts[key] = counts.get(key, 0) + n
    return counts


def _user_name(user):
    return user.full_name if user else None


def severity_interpretation(index: float) -> str:
    if index < 1.5:
        return "Good – majority of defects are low severity"
    if index <= 2:
        return "Acceptable – mix of medium and low defects"
    return "Concerning – high severity defects dominate"


# ── Scoped queries ───────────────────────────────────────────────────────────

def _scoped(model, status_filter, project_id_filter):
    q = model.query
    if model is Project:
        if status_filter:
            q = q.filter(Project.status == status_filter)
        if project_id_filter:
            q = q.filter(Project.id == project_id_filter)
        return q
    if project_id_filter:
        q = q.filter(model.project_id == project_id_filter)
    if status_filter:
        q = q.filter(model.project_id.in_(
            db.session.query(Project.id).filter(Project.status == status_filter)
        ))
    return q


def parse_filters(args):
    """Validated ``(status, project_id)`` from request args; invalid values are ignored."""
    raw_status = args.get("status")
    status = normalize_key(raw_status) if raw_status else None
    if status not in PROJECT_STATUSES:
        status = None
    try:
        project_id = int(args.get("projectId") or 0)
    except (TypeError, ValueError):
        project_id = 0
    return status, (project_id if project_id > 0 else None)


# ═════════════════════════════════════════════════════════════════════════════
# Sections
# ═════════════════════════════════════════════════════════════════════════════

def _test_case_summary(q_cases, latest_file):
    status_map = _count_map(q_cases, TestCase.status)
    severity_map = _count_map(q_cases, TestCase.severity)

    total = sum(status_map.values())
    executed = pick_counts(status_map, PASS_STATUSES + FAIL_STATUSES + BLOCKED_STATUSES + ON_HOLD_STATUSES)
    passed = pick_counts(status_map, PASS_STATUSES)
    pass_rate = round(passed / executed * 100, 1) if executed else 0

    meta = None
    if latest_file:
        meta = {
            "name": latest_file.name,
            "project": latest_file.project.name if latest_file.project else None,
            "author": _user_name(latest_file.author),
            "version": latest_file.version,
            "environment": latest_file.environment,
            "release": latest_file.release_build,
            "refer": latest_file.refer,
            "createdAt": iso(latest_file.created_at),
            "updatedAt": iso(latest_file.updated_at),
        }

    return {
        "meta": meta,
        "severityCounts": make_distribution(severity_map),
        "statusCounts": make_distribution(status_map),
        "totals": {
            "total": total,
            "executed": executed,
            "passed": passed,
            "failed": pick_counts(status_map, FAIL_STATUSES),
            "blocked": pick_counts(status_map, BLOCKED_STATUSES),
            "onHold": pick_counts(status_map, ON_HOLD_STATUSES),
            "notExecuted": pick_counts(status_map, NOT_EXECUTED_STATUSES),
            "notApplicable": pick_counts(status_map, NOT_APPLICABLE_STATUSES),
            "passRate": pass_rate,
        },
    }


def _severity_index(q_defects, severity_map):
    resolved_map: dict[str, int] = {}
    matrix: dict[str, dict[str, int]] = {}
    rows = (
        q_defects.with_entities(Defect.severity, Defect.status, db.func.count())
        .group_by(Defect.severity, Defect.status)
        .all()
    )
    for severity, status, n in rows:
        sev_key, status_key = normalize_key(severity), normalize_key(status)
        matrix.setdefault(sev_key, {})
        matrix[sev_key][status_key] = matrix[sev_key].get(status_key, 0) + n
        if status_key in RESOLVED_STATUSES:
            resolved_map[sev_key] = resolved_map.get(sev_key, 0) + n

    breakdown = []
    for key, count in severity_map.items():
        weight = SEVERITY_WEIGHTS.get(key, 0)
        resolved = resolved_map.get(key, 0)
        unresolved = max(count - resolved, 0)
        breakdown.append({
            "key": key,
            "label": humanize(key),
            "total": count,
            "weight": weight,
            "resolved": resolved,
            "unresolved": unresolved,
            "unresolvedWeighted": unresolved * weight,
            "_totalWeighted": count * weight,
        })

    total_count = sum(b["total"] for b in breakdown)
    final_index = sum(b["_totalWeighted"] for b in breakdown) / total_count if total_count else 0
    unresolved_count = sum(b["unresolved"] for b in breakdown)
    current_index = (
        sum(b["unresolvedWeighted"] for b in breakdown) / unresolved_count
        if unresolved_count else final_index
    )
    value = round(current_index, 3)
    for b in breakdown:
        b.pop("_totalWeighted")

    matrix_rows = [
        {
            "severityKey": sev_key,
            "severityLabel": humanize(sev_key),
            "open": pick_counts(counts, OPEN_STATUSES),
            "closed": pick_counts(counts, RESOLVED_STATUSES),
            "deferred": pick_counts(counts, DEFERRED_STATUSES),
        }
        for sev_key, counts in matrix.items()
    ]
    index = {"value": value, "interpretation": severity_interpretation(value), "breakdown": breakdown}
    return index, matrix_rows


def average_resolution_days(q_defects) -> float:
    rows = (
        q_defects.filter(Defect.reported_date.isnot(None), Defect.closed_date.isnot(None))
        .with_entities(Defect.reported_date, Defect.closed_date)
        .all()
    )
    durations = [
        max((closed - reported).total_seconds() / 86400, 0)
        for reported, closed in rows
    ]
    return round(sum(durations) / len(durations), 1) if durations else 0


def _file_button(f):
    return {
        "id": f.id,
        "name": f.name,
        "projectId": f.project_id,
        "projectName": f.project.name if f.project else None,
        "projectStatus": f.project.status if f.project else None,
        "version": f.version,
        "environment": f.environment,
        "release": f.release_build,
        "updatedAt": iso(f.updated_at),
    }


# ═════════════════════════════════════════════════════════════════════════════
# Entry point
# ═════════════════════════════════════════════════════════════════════════════

def compute_dashboard(status_filter=None, project_id_filter=None, current_user_id=None) -> dict:
    """Build the full dashboard payload for the given project filters."""
    q_projects = _scoped(Project, status_filter, project_id_filter)
    q_cases = _scoped(TestCase, status_filter, project_id_filter)
    q_defects = _scoped(Defect, status_filter, project_id_filter)
    q_case_files = _scoped(TestCaseFile, status_filter, project_id_filter).filter(
        TestCaseFile.is_deleted.is_(False))
    q_defect_files = _scoped(DefectFile, status_filter, project_id_filter).filter(
        DefectFile.is_deleted.is_(False))

    all_status_map = _count_map(Project.query, Project.status)
    project_status_map = _count_map(q_projects, Project.status)
    test_case_summary = _test_case_summary(
        q_cases, q_case_files.order_by(TestCaseFile.updated_at.desc()).first(),
    )

    defect_status_map = _count_map(q_defects, Defect.status)
    severity_map = _count_map(q_defects, Defect.severity)
    severity_index, matrix = _severity_index(q_defects, severity_map)
    avg_days = average_resolution_days(q_defects)

    totals_tc = test_case_summary["totals"]
    total_defects = sum(defect_status_map.values())
    open_defects = pick_counts(defect_status_map, OPEN_STATUSES)
    resolved_defects = pick_counts(defect_status_map, RESOLVED_STATUSES)
    reopened_defects = pick_counts(defect_status_map, REOPENED_STATUSES)

    summary_cards = [
        {"key": "projects_total", "title": "Projects", "value": sum(project_status_map.values())},
        {"key": "projects_ongoing", "title": "Ongoing Projects",
         "value": pick_counts(project_status_map, ("ongoing",))},
        {"key": "test_cases_total", "title": "Test Cases", "value": totals_tc["total"]},
        {"key": "test_cases_executed", "title": "Executed Test Cases", "value": totals_tc["executed"]},
        {"key": "test_case_pass_rate", "title": "Test Case Pass Rate",
         "value": totals_tc["passRate"], "unit": "%"},
        {"key": "defects_total", "title": "Defects Logged", "value": total_defects},
        {"key": "defects_open", "title": "Open Defects", "value": open_defects},
        {"key": "defects_resolved", "title": "Resolved Defects", "value": resolved_defects},
        {"key": "defects_reopened", "title": "Reopened Defects", "value": reopened_defects},
        {"key": "defect_resolution_time", "title": "Avg. Resolution (days)", "value": avg_days},
    ]

    latest_project = q_projects.order_by(Project.updated_at.desc()).first()
    current_user = db.session.get(User, current_user_id) if current_user_id else None
    project_info = None
    if latest_project:
        project_info = {
            "name": latest_project.name,
            "code": latest_project.code,
            "pm": _user_name(latest_project.owner),
            "ba": None,
            "qal": None,
            "preparedBy": _user_name(current_user),
            "dateCreated": iso(latest_project.created_at),
            "accessLevel": "Internal",
        }

    defect_overview = {
        "statusDistribution": make_distribution(defect_status_map),
        "priorityDistribution": make_distribution(_count_map(q_defects, Defect.priority)),
        "severityDistribution": make_distribution(severity_map),
        "severityIndex": severity_index,
        "matrix": matrix,
        "totals": {
            "open": open_defects,
            "resolved": resolved_defects,
            "reopened": reopened_defects,
            "inProgress": pick_counts(defect_status_map, IN_PROGRESS_STATUSES),
            "deferred": pick_counts(defect_status_map, DEFERRED_STATUSES),
            "rejected": pick_counts(defect_status_map, REJECTED_STATUSES),
            "total": total_defects,
        },
    }

    return {
        "updatedAt": datetime.now(timezone.utc).isoformat(),
        "filters": {"status": status_filter, "projectId": project_id_filter},
        "statusOptions": [
            {"value": s, "label": humanize(s), "count": all_status_map.get(s, 0)}
            for s in PROJECT_STATUSES
        ],
        "projects": [
            {"id": p.id, "name": p.name, "code": p.code, "status": p.status}
            for p in q_projects.order_by(Project.name, Project.code).all()
        ],
        "testCaseFiles": [_file_button(f) for f in q_case_files.order_by(TestCaseFile.updated_at.desc()).all()],
        "defectFiles": [_file_button(f) for f in q_defect_files.order_by(DefectFile.updated_at.desc()).all()],
        "summaryCards": summary_cards,
        "projectInfo": project_info,
        "defectOverview": defect_overview,
        "testCaseSummary": test_case_summary,
    }
