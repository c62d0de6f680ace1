"""
Account tree -- pure traversal of the chart-of-accounts hierarchy.

Responsibility:
    The chart of accounts is a forest linked by parent_id.  Services load
    every account once into an id-keyed arena (``dict[UUID, AccountInfo]``)
    and use these functions to answer ancestry questions and build nested
    trees without issuing one query per level.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - All traversals are iterative with an explicit stack, so hierarchy
      depth never reaches the interpreter recursion limit.
    - Children are ordered by account code.
    - A corrupt arena containing a cycle terminates instead of looping.
"""

from collections import defaultdict
from uuid import UUID

from ledger_kernel.domain.dtos import AccountInfo, AccountNode

Arena = dict[UUID, AccountInfo]


def children_index(arena: Arena) -> dict[UUID | None, list[UUID]]:
    """Map each parent id (None for roots) to its child ids, sorted by code."""
    index: dict[UUID | None, list[UUID]] = defaultdict(list)
    for account in arena.values():
        parent = account.parent_id if account.parent_id in arena else None
        index[parent].append(account.id)
    for child_ids in index.values():
        child_ids.sort(key=lambda account_id: arena[account_id].code)
    return index


def ancestors(arena: Arena, account_id: UUID) -> list[AccountInfo]:
    """Ancestors of ``account_id``, root first.  Excludes the account itself."""
    chain: list[AccountInfo] = []
    seen = {account_id}
    current = arena[account_id].parent_id
    while current is not None and current in arena and current not in seen:
        seen.add(current)
        node = arena[current]
        chain.append(node)
        current = node.parent_id
    chain.reverse()
    return chain


def descendants(
    arena: Arena,
    account_id: UUID,
    index: dict[UUID | None, list[UUID]] | None = None,
) -> set[UUID]:
    """Ids of every account below ``account_id``."""
    index = index if index is not None else children_index(arena)
    found: set[UUID] = set()
    stack = list(index.get(account_id, ()))
    while stack:
        current = stack.pop()
        if current in found:
            continue
        found.add(current)
        stack.extend(index.get(current, ()))
    return found


def would_create_cycle(arena: Arena, account_id: UUID, new_parent_id: UUID | None) -> bool:
    """True if placing ``account_id`` under ``new_parent_id`` makes it its own ancestor."""
    if new_parent_id is None:
        return False
    if new_parent_id == account_id:
        return True
    return any(a.id == account_id for a in ancestors(arena, new_parent_id))


def tree_path(arena: Arena, account_id: UUID, separator: str = " > ") -> str:
    names = [a.name for a in ancestors(arena, account_id)]
    names.append(arena[account_id].name)
    return separator.join(names)


def build_tree(arena: Arena, root_id: UUID | None = None) -> list[AccountNode]:
    """
    Build nested AccountNodes.

    With ``root_id`` the result is a single-element list holding that
    subtree; otherwise one node per root account, ordered by code.
    """
    index = children_index(arena)
    roots = [root_id] if root_id is not None else list(index.get(None, ()))

    built: dict[UUID, AccountNode] = {}
    for root in roots:
        # post-order: a node is assembled once all of its children are
        stack: list[tuple[UUID, bool]] = [(root, False)]
        while stack:
            current, expanded = stack.pop()
            if current in built:
                continue
            if expanded:
                built[current] = AccountNode(
                    account=arena[current],
                    children=tuple(built[c] for c in index.get(current, ()) if c in built),
                )
                continue
            stack.append((current, True))
            for child in reversed(index.get(current, ())):
                if child not in built:
                    stack.append((child, False))

    return [built[root] for root in roots]
