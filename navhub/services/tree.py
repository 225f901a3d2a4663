from __future__ import annotations

import logging
from dataclasses import dataclass, field

from navhub.models import Group, Site

logger = logging.getLogger(__name__)


@dataclass
class GroupForestNode:
    group: Group
    children: list[GroupForestNode] = field(default_factory=list)
    sites: list[Site] = field(default_factory=list)

    @property
    def id(self) -> int:
        return self.group.id

    def as_dict(self) -> dict:
        payload = self.group.as_dict()
        payload["sites"] = [site.as_dict() for site in self.sites]
        payload["children"] = [child.as_dict() for child in self.children]
        return payload


def _order_key(item) -> tuple[int, int]:
    return (item.order_num, item.id)


def _sort_level(nodes: list[GroupForestNode]) -> None:
    nodes.sort(key=lambda node: _order_key(node.group))
    for node in nodes:
        node.sites.sort(key=_order_key)
        _sort_level(node.children)


def _count_reachable(nodes: list[GroupForestNode]) -> int:
    return sum(1 + _count_reachable(node.children) for node in nodes)


def assemble(groups, sites) -> list[GroupForestNode]:
    """Build the ordered forest from flat group and site rows.

    Sites whose group is missing are dropped. Groups whose parent is missing
    (or is the group itself) become roots. Groups caught in a stored parent
    cycle are unreachable from any root and are dropped with a warning.
    """
    nodes: dict[int, GroupForestNode] = {}
    for group in groups:
        nodes[group.id] = GroupForestNode(group=group)

    orphaned = 0
    for site in sites:
        node = nodes.get(site.group_id)
        if node is None:
            orphaned += 1
            continue
        node.sites.append(site)
    if orphaned:
        logger.debug("Dropped %s site(s) with no visible group", orphaned)

    roots: list[GroupForestNode] = []
    for node in nodes.values():
        parent_id = node.group.parent_id
        parent = nodes.get(parent_id) if parent_id is not None else None
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.children.append(node)

    unreachable = len(nodes) - _count_reachable(roots)
    if unreachable:
        logger.warning("Dropped %s group(s) caught in a parent cycle", unreachable)

    _sort_level(roots)
    return roots


def load_forest(
    authenticated: bool, auth_required_for_read: bool = False
) -> list[GroupForestNode]:
    if not authenticated and auth_required_for_read:
        return []

    group_query = Group.query
    site_query = Site.query
    if not authenticated:
        group_query = group_query.filter(Group.is_public.is_(True))
        site_query = site_query.filter(Site.is_public.is_(True))
    return assemble(group_query.all(), site_query.all())
