from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .errors import InvalidContentTree
from .models import ContentNode, NodeKind

NodeInput = Union[ContentNode, Mapping[str, Any]]


def _kind_for(raw: Any, depth: int) -> NodeKind:
    # Without an explicit kind, top-level nodes are chapters and the rest headings.
    if raw is None or raw == "":
        return NodeKind.CHAPTER if depth == 1 else NodeKind.HEADING
    if isinstance(raw, NodeKind):
        return raw
    try:
        return NodeKind(str(raw).strip().lower())
    except ValueError:
        raise InvalidContentTree(f"Unknown node kind: {raw!r}")


def _coerce(node: NodeInput) -> Dict[str, Any]:
    if isinstance(node, ContentNode):
        return {
            'id': node.id,
            'kind': node.kind,
            'title': node.title,
            'parent_id': node.parent_id,
            'order': node.order,
            'body': node.body,
        }

    node_id = node.get('id')
    if node_id is None or str(node_id) == "":
        raise InvalidContentTree("Content node without an id")
    parent_id = node.get('parent_id')
    order = node.get('order', node.get('order_index', 0))
    try:
        order = float(order or 0)
    except (TypeError, ValueError):
        raise InvalidContentTree(f"Order key is not numeric: {order!r}", chapter_id=str(node_id))

    return {
        'id': str(node_id),
        'kind': node.get('kind'),
        'title': str(node.get('title') or ""),
        'parent_id': str(parent_id) if parent_id not in (None, "") else None,
        'order': order,
        'body': node.get('body') or node.get('html') or "",
    }


def _find_cycle_member(records: Dict[str, Dict[str, Any]], unreached: Iterable[str]) -> str:
    # Walk parent links from an unreached node until a node repeats.
    start = min(unreached)
    seen = set()
    current: Optional[str] = start
    while current is not None and current not in seen:
        seen.add(current)
        current = records[current]['parent_id']
    return current if current is not None else start


def _walk(children: Dict[Optional[str], List[Dict[str, Any]]], roots: List[Dict[str, Any]],
          subtree: bool = False) -> List[ContentNode]:
    sequence: List[ContentNode] = []
    # Stack of (record, depth, inherited chapter title); reversed so the
    # first sibling is popped first.
    stack = [(r, 1, "") for r in reversed(roots)]
    while stack:
        record, depth, inherited = stack.pop()
        if subtree:
            # A previewed item is the one chapter; everything under it is a heading.
            kind = NodeKind.CHAPTER if depth == 1 else NodeKind.HEADING
        else:
            kind = _kind_for(record['kind'], depth)
        chapter_title = record['title'] if kind == NodeKind.CHAPTER else inherited

        sequence.append(ContentNode(
            id=record['id'],
            kind=kind,
            title=record['title'],
            parent_id=record['parent_id'] if depth > 1 else None,
            order=record['order'],
            body=record['body'],
            depth=depth,
            chapter_title=chapter_title,
        ))

        for child in reversed(children.get(record['id'], [])):
            stack.append((child, depth + 1, chapter_title))

    return sequence


def linearize(nodes: Iterable[NodeInput], root_id: Optional[str] = None) -> List[ContentNode]:
    """Flatten a content tree into reading order.

    Pre-order traversal; siblings sorted by order key, then id. Every node
    gets its depth (top level = 1) and the title of its nearest
    ancestor-or-self chapter.

    With root_id only that node and its descendants are kept, re-rooted at
    depth 1: the root becomes the single chapter and the rest headings.

    Raises:
        InvalidContentTree: duplicate ids, dangling parents, cycles or an
            unknown root_id.
    """
    records: Dict[str, Dict[str, Any]] = {}
    for node in nodes:
        record = _coerce(node)
        if record['id'] in records:
            raise InvalidContentTree("Duplicate node id", chapter_id=record['id'])
        records[record['id']] = record

    children: Dict[Optional[str], List[Dict[str, Any]]] = {}
    for record in records.values():
        parent_id = record['parent_id']
        if parent_id is not None and parent_id not in records:
            raise InvalidContentTree(
                f"Parent {parent_id!r} does not exist", chapter_id=record['id']
            )
        if parent_id == record['id']:
            raise InvalidContentTree("Node is its own parent", chapter_id=record['id'])
        children.setdefault(parent_id, []).append(record)

    for siblings in children.values():
        siblings.sort(key=lambda r: (r['order'], r['id']))

    sequence = _walk(children, children.get(None, []))

    if len(sequence) != len(records):
        reached = {n.id for n in sequence}
        unreached = [node_id for node_id in records if node_id not in reached]
        raise InvalidContentTree(
            "Content tree contains a cycle",
            chapter_id=_find_cycle_member(records, unreached),
        )

    if root_id is None:
        return sequence

    root = records.get(str(root_id))
    if root is None:
        raise InvalidContentTree("Root node does not exist", chapter_id=str(root_id))
    return _walk(children, [root], subtree=True)


def chapters(sequence: Iterable[ContentNode]) -> List[ContentNode]:
    return [n for n in sequence if n.is_chapter]

