from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class BlueprintValidation:
    ok: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    metrics: Dict[str, int] = field(default_factory=dict)


def validate_blueprint(blueprint: Optional[Dict[str, Any]]) -> BlueprintValidation:
    """Check a build blueprint's routes, navigation and flows for consistency.

    Errors make the blueprint unusable (missing/duplicate route ids, bad
    paths, navigation pointing nowhere, flows without ids); warnings are
    advisory only.
    """
    if not blueprint:
        return BlueprintValidation(
            ok=False,
            errors=["No blueprint available"],
            metrics={"routesTotal": 0, "routesWithNav": 0, "flowsTotal": 0},
        )

    errors: List[str] = []
    warnings: List[str] = []
    routes = [r for r in blueprint.get("routes") or [] if isinstance(r, dict)]

    route_ids = set()
    for route in routes:
        rid = route.get("id")
        if not rid:
            errors.append("Route missing id")
            continue
        if rid in route_ids:
            errors.append(f"Duplicate route id: {rid}")
        route_ids.add(rid)

        path = route.get("path")
        kind = route.get("kind")
        if not path or not isinstance(path, str):
            errors.append(f"Route {rid} missing path")
        elif kind == "page" and not path.startswith("/"):
            errors.append(f"Route {rid} is page but path is not absolute: {path}")
        elif kind == "section" and not path.startswith("#"):
            warnings.append(f"Route {rid} is section but path does not start with '#': {path}")
        elif kind == "section" and path.strip() == "#":
            errors.append(f'Route {rid} has placeholder section path "#"')

    nav_items = [n for n in (blueprint.get("navigation") or {}).get("items") or [] if isinstance(n, dict)]
    nav_route_ids = {n.get("routeId") for n in nav_items}
    routes_with_nav = 0
    for route in routes:
        if route.get("id") in nav_route_ids:
            routes_with_nav += 1
        else:
            warnings.append(f"Route missing from navigation: {route.get('id')}")

    by_id = {r.get("id"): r for r in routes if r.get("id")}
    for nav in nav_items:
        target_id = nav.get("routeId")
        if target_id not in route_ids:
            errors.append(f"Navigation references unknown routeId: {target_id}")
        if not nav.get("label"):
            warnings.append(f"Navigation item for {target_id} missing label")
        target = by_id.get(target_id)
        if target and target.get("kind") == "section":
            warnings.append(
                f'Navigation item "{nav.get("label") or target_id}" points to a section route '
                f"({target.get('path')}). Consider making this a page route for end-to-end navigation."
            )

    flows = [f for f in blueprint.get("flows") or [] if isinstance(f, dict)]
    for flow in flows:
        fid = flow.get("id")
        if not fid:
            errors.append("Flow missing id")
        if not flow.get("name"):
            warnings.append(f"Flow {fid or '(unknown)'} missing name")
        steps = flow.get("steps")
        if not isinstance(steps, list) or not steps:
            warnings.append(f"Flow {fid or '(unknown)'} has no steps")
        for rid in flow.get("routeIds") or []:
            if rid not in route_ids:
                warnings.append(f"Flow {fid or '(unknown)'} references unknown routeId: {rid}")

    return BlueprintValidation(
        ok=not errors,
        errors=errors,
        warnings=warnings,
        metrics={"routesTotal": len(routes), "routesWithNav": routes_with_nav, "flowsTotal": len(flows)},
    )
