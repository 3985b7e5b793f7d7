"""Sidebar links for the dashboard shell."""

from __future__ import annotations

from typing import Any

SIDEBAR_LINKS: tuple[dict[str, Any], ...] = (
    {
        "label": "Dashboard",
        "items": (
            {"title": "Home", "href": "/dashboard", "icon": "home"},
            {"title": "Prices", "href": "/dashboard/prices", "icon": "euro"},
            {"title": "Agenda", "href": "/dashboard/slots", "icon": "calendar"},
        ),
    },
)


def sidebar_groups(current_path: str) -> list[dict[str, Any]]:
    """Return the sidebar groups with ``active`` set on the current page."""

    path = (current_path or "").rstrip("/") or "/"
    return [
        {
            "label": group["label"],
            "items": [{**item, "active": item["href"] == path} for item in group["items"]],
        }
        for group in SIDEBAR_LINKS
    ]
