"""
Dashboard summary builders. Pure functions over plain dicts so they can be
fed from ORM rows or fixtures alike.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence

from okrflow.dates import utc_today, week_start
from okrflow.progress import objective_score, traffic_light
from okrflow.types import ObjectiveStatus, TrafficLight

HEATMAP_WEEKS = 5


def heatmap_weeks(today: Optional[date] = None) -> List[date]:
    """The last ``HEATMAP_WEEKS`` Mondays, oldest first, ending with this week."""
    end = week_start(today or utc_today())
    return [end - timedelta(weeks=offset) for offset in range(HEATMAP_WEEKS - 1, -1, -1)]


def build_progress_heatmap(key_results: Sequence[dict], today: Optional[date] = None) -> List[dict]:
    weeks = heatmap_weeks(today)
    rows = []
    for kr in key_results:
        by_week = {}
        for check_in in kr.get("check_ins") or []:
            by_week.setdefault(week_start(check_in["week_start"]), check_in)
        weekly = []
        for week in weeks:
            matching = by_week.get(week)
            value = round(matching["value"]) if matching else 0
            weekly.append(
                {"value": value, "status": traffic_light(value).value, "date": week}
            )
        rows.append(
            {
                "key_result_id": kr["id"],
                "key_result_title": kr["title"],
                "objective_title": kr["objective_title"],
                "owner_name": kr.get("owner_name") or kr.get("owner_email"),
                "weekly_progress": weekly,
            }
        )
    return rows


def build_weekly_summary(rows: Iterable[dict], today: Optional[date] = None) -> dict:
    start = week_start(today or utc_today())
    counts = {"on_track": 0, "at_risk": 0, "off_track": 0, "due_this_week": 0}
    for row in rows:
        weekly = row["weekly_progress"]
        if not weekly:
            counts["due_this_week"] += 1
            continue
        latest = max(weekly, key=lambda cell: cell["date"])
        if latest["date"] < start or latest["value"] == 0:
            counts["due_this_week"] += 1
        if latest["status"] == TrafficLight.GREEN.value:
            counts["on_track"] += 1
        elif latest["status"] == TrafficLight.YELLOW.value:
            counts["at_risk"] += 1
        elif latest["status"] == TrafficLight.RED.value:
            counts["off_track"] += 1
    return counts


def build_team_heatmap(objectives: Iterable[dict]) -> List[dict]:
    teams: dict = {}
    for objective in objectives:
        team_id = objective.get("team_id") or "unassigned"
        node = teams.setdefault(
            team_id,
            {
                "team_id": team_id,
                "team_name": objective.get("team_name") or "Unassigned",
                "total": 0.0,
                "objective_count": 0,
                "members": set(),
            },
        )
        node["total"] += objective["progress"] or 0
        node["objective_count"] += 1
        node["members"].add(objective["owner_email"])

    entries = []
    for node in teams.values():
        progress = round(node["total"] / node["objective_count"]) if node["objective_count"] else 0
        entries.append(
            {
                "team_id": node["team_id"],
                "team_name": node["team_name"],
                "progress": progress,
                "status": traffic_light(progress).value,
                "objective_count": node["objective_count"],
                "member_count": len(node["members"]) or 1,
            }
        )
    return entries


def build_alignment_tree(items: Iterable[dict]) -> List[dict]:
    """
    Nest objectives under their parents. Objectives whose parent is not in
    ``items`` become roots.
    """
    nodes = {}
    parents = {}
    for item in items:
        nodes[item["id"]] = {
            "id": item["id"],
            "title": item["title"],
            "progress": item["progress"],
            "owner": item.get("owner_name") or item.get("owner_email"),
            "team_name": item.get("team_name"),
            "goal_type": item.get("goal_type"),
            "children": [],
        }
        parents[item["id"]] = item.get("parent_id")

    roots = []
    for node_id, node in nodes.items():
        parent_id = parents[node_id]
        if parent_id and parent_id in nodes:
            nodes[parent_id]["children"].append(node)
        else:
            roots.append(node)
    return roots


def build_hero_summary(objectives: Sequence[dict]) -> dict:
    if not objectives:
        return {
            "avg_progress": 0,
            "completion_rate": 0,
            "at_risk_objectives": 0,
            "objective_count": 0,
            "score_average": 0,
        }

    count = len(objectives)
    avg_progress = round(sum(o.get("progress") or 0 for o in objectives) / count)
    done = sum(1 for o in objectives if o.get("status") == ObjectiveStatus.DONE.value)
    at_risk = sum(1 for o in objectives if o.get("status") == ObjectiveStatus.AT_RISK.value)
    scores = [
        o["score"] if isinstance(o.get("score"), (int, float)) else objective_score(o.get("progress"))
        for o in objectives
    ]
    return {
        "avg_progress": avg_progress,
        "completion_rate": round(done / count * 100),
        "at_risk_objectives": at_risk,
        "objective_count": count,
        "score_average": round(sum(scores) / count, 2),
    }
