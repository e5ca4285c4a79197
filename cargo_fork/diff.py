"""Compare two resolved dependency graphs."""

from __future__ import annotations

from cargo_fork.models import DependencyGraph, GraphDiff, NodeDiff


def diff_graphs(before: DependencyGraph, after: DependencyGraph) -> GraphDiff:
    """Report edge changes for every node of *after*.

    Unchanged nodes are omitted. A node missing from *before* is reported
    as new, with all of its dependencies added. Nodes that only exist in
    *before* are not reported.
    """
    result: GraphDiff = {}
    for node, deps_after in after.items():
        deps_before = before.get(node)
        if deps_before is None:
            result[node] = NodeDiff(added=set(deps_after), is_new=True)
        elif deps_before != deps_after:
            result[node] = NodeDiff(
                added=set(deps_after - deps_before),
                removed=set(deps_before - deps_after),
            )
    return result


def format_diff(diff: GraphDiff) -> list[str]:
    """Render *diff* as report lines, sorted for stable output.

    ::

        serde 1.0.0 (registry+...):
          - serde_derive 1.0.0 (registry+...)
          + serde_derive 1.0.0 (path+file:///...)
        +foo 0.1.0 (path+file:///...):
    """
    lines: list[str] = []
    for node in sorted(diff):
        change = diff[node]
        lines.append(f"+{node}:" if change.is_new else f"{node}:")
        lines.extend(f"  - {dep}" for dep in sorted(change.removed))
        lines.extend(f"  + {dep}" for dep in sorted(change.added))
    return lines


def diff_to_dict(diff: GraphDiff) -> dict[str, dict]:
    """JSON-friendly form of *diff*."""
    return {
        node: {
            "new": change.is_new,
            "added": sorted(change.added),
            "removed": sorted(change.removed),
        }
        for node, change in sorted(diff.items())
    }
