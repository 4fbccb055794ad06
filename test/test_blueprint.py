from __future__ import annotations

from internal.clients import validate_blueprint


def _blueprint() -> dict:
    return {
        "routes": [
            {"id": "home", "path": "/", "kind": "page"},
            {"id": "pricing", "path": "#pricing", "kind": "section"},
        ],
        "navigation": {"items": [{"routeId": "home", "label": "Home"}, {"routeId": "pricing", "label": "Pricing"}]},
        "flows": [{"id": "signup", "name": "Sign up", "steps": ["open"], "routeIds": ["home"]}],
    }


def test_valid_blueprint() -> None:
    result = validate_blueprint(_blueprint())

    assert result.ok
    assert result.errors == []
    assert result.metrics == {"routesTotal": 2, "routesWithNav": 2, "flowsTotal": 1}
    assert any("points to a section route" in w for w in result.warnings)


def test_missing_blueprint() -> None:
    result = validate_blueprint(None)
    assert not result.ok
    assert result.errors == ["No blueprint available"]


def test_route_errors() -> None:
    bp = _blueprint()
    bp["routes"].append({"id": "home", "path": "/again", "kind": "page"})
    bp["routes"].append({"path": "/orphan", "kind": "page"})
    bp["routes"].append({"id": "about", "path": "about", "kind": "page"})
    bp["routes"].append({"id": "faq", "path": "#", "kind": "section"})

    errors = validate_blueprint(bp).errors

    assert "Duplicate route id: home" in errors
    assert "Route missing id" in errors
    assert "Route about is page but path is not absolute: about" in errors
    assert 'Route faq has placeholder section path "#"' in errors


def test_navigation_and_flow_problems() -> None:
    bp = _blueprint()
    bp["navigation"]["items"].append({"routeId": "ghost"})
    bp["flows"].append({"routeIds": ["nowhere"]})

    result = validate_blueprint(bp)

    assert not result.ok
    assert "Navigation references unknown routeId: ghost" in result.errors
    assert "Flow missing id" in result.errors
    assert "Navigation item for ghost missing label" in result.warnings
    assert "Flow (unknown) missing name" in result.warnings
    assert "Flow (unknown) references unknown routeId: nowhere" in result.warnings
