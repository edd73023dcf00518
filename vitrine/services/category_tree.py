"""
Category tree resolver.

Turns the flat category list into a navigable tree and answers
"this category and everything below it" questions, used both by the
catalog filter and by the parent selector of the category editor.
"""
from collections import defaultdict
from typing import Iterable, List, Optional, Set


def _get(item, attr):
    """Read a field from a model instance or a plain dict."""
    if isinstance(item, dict):
        return item.get(attr)
    return getattr(item, attr)


class CategoryIndex:
    """
    Parent -> children adjacency map built once over a category list.

    Descendant sets are memoized per category id, so repeated filter
    lookups during a request stay O(1) after the first one.
    """

    def __init__(self, items: Iterable):
        self.items = list(items)
        self.by_id = {_get(item, 'id'): item for item in self.items}
        self.children = defaultdict(list)
        for item in self.items:
            self.children[_get(item, 'parent_id')].append(item)
        self._descendants = {}

    def get_descendant_ids(self, category_id) -> Set[int]:
        """Return the category id plus the ids of all transitive children."""
        if category_id in self._descendants:
            return self._descendants[category_id]

        result = {category_id}
        stack = [category_id]
        while stack:
            current = stack.pop()
            for child in self.children.get(current, ()):
                child_id = _get(child, 'id')
                if child_id not in result:
                    result.add(child_id)
                    stack.append(child_id)

        self._descendants[category_id] = result
        return result

    def get_parent_options(self, exclude_id=None) -> list:
        """All categories that may be chosen as parent of `exclude_id`."""
        if exclude_id is None:
            return list(self.items)
        excluded = self.get_descendant_ids(exclude_id)
        return [item for item in self.items if _get(item, 'id') not in excluded]

    def build_tree(self, parent_id=None, expanded_ids: Iterable = ()) -> List[dict]:
        """Nested nodes under `parent_id`, siblings in input order."""
        expanded = set(expanded_ids)
        return self._build(parent_id, expanded, set())

    def _build(self, parent_id, expanded, seen) -> List[dict]:
        nodes = []
        for item in self.children.get(parent_id, ()):
            item_id = _get(item, 'id')
            if item_id in seen:
                continue  # corrupt data with a cycle: stop descending
            nodes.append({
                'id': item_id,
                'name': _get(item, 'name'),
                'parent_id': _get(item, 'parent_id'),
                'sort_order': _get(item, 'sort_order') or 0,
                'expanded': item_id in expanded,
                'children': self._build(item_id, expanded, seen | {item_id}),
            })
        return nodes

    def would_create_cycle(self, category_id, new_parent_id: Optional[int]) -> bool:
        """True if `new_parent_id` is the category itself or one of its descendants."""
        if new_parent_id is None or category_id is None:
            return False
        return new_parent_id in self.get_descendant_ids(category_id)


def build_tree(items, parent_id=None, expanded_ids=()) -> List[dict]:
    """Group a flat category list into nested nodes."""
    return CategoryIndex(items).build_tree(parent_id, expanded_ids)


def get_descendant_ids(items, category_id) -> Set[int]:
    return CategoryIndex(items).get_descendant_ids(category_id)


def get_parent_options(items, exclude_id=None) -> list:
    return CategoryIndex(items).get_parent_options(exclude_id)
