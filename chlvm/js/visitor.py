"""Read-only visitor over ESTree nodes."""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Tuple

from .nodes import is_identifier, is_node, iter_child_nodes, node_type

__all__ = ["NodeVisitor", "bound_name"]

_VISIT = "visit"
_ENTER = "enter"
_LEAVE = "leave"

_Work = Tuple[str, Any, Optional[Callable[[], None]]]


class NodeVisitor:
    """Dispatch ``visit_<Type>`` methods while tracking the ancestor chain.

    Handlers call :meth:`generic_visit` to continue into the children of the
    node they received.  Inside a handler, :attr:`parent` refers to the node
    that contains the one being handled.

    Traversal runs on an explicit work stack rather than the Python stack, so
    long operator chains do not hit the recursion limit.  Calls to
    :meth:`visit` and :meth:`generic_visit` made from a handler are queued and
    run, in call order, once the handler returns.  Work that must happen after
    the children have been visited goes in the ``on_exit`` callback of
    :meth:`generic_visit`.
    """

    def __init__(self) -> None:
        self._ancestors: List[Any] = []
        self._queued: Optional[List[_Work]] = None

    @property
    def parent(self) -> Optional[Any]:
        return self._ancestors[-1] if self._ancestors else None

    def visit(self, node: Any) -> None:
        self._submit([(_VISIT, node, None)])

    def generic_visit(self, node: Any, on_exit: Optional[Callable[[], None]] = None) -> None:
        work: List[_Work] = [(_ENTER, node, None)]
        work.extend((_VISIT, child, None) for child in iter_child_nodes(node))
        work.append((_LEAVE, node, on_exit))
        self._submit(work)

    def _submit(self, work: List[_Work]) -> None:
        if self._queued is not None:
            self._queued.extend(work)
            return

        stack = list(reversed(work))
        try:
            while stack:
                action, node, on_exit = stack.pop()
                self._queued = []
                if action == _VISIT:
                    self._dispatch(node)
                elif action == _ENTER:
                    self._ancestors.append(node)
                else:
                    self._ancestors.pop()
                    if on_exit is not None:
                        on_exit()
                stack.extend(reversed(self._queued))
        finally:
            self._queued = None
            self._ancestors.clear()

    def _dispatch(self, node: Any) -> None:
        if isinstance(node, (list, tuple)):
            for item in node:
                self.visit(item)
            return
        if not is_node(node):
            return
        handler = getattr(self, f"visit_{node_type(node)}", None)
        if handler is None:
            self.generic_visit(node)
        else:
            handler(node)


def bound_name(node: Any, parent: Optional[Any]) -> Optional[str]:
    """Return the name a function node is known by.

    The declared id wins; otherwise the identifier the function expression is
    bound to through ``var X = function () {}`` or ``X = function () {}``.
    """

    ident = getattr(node, "id", None)
    if is_identifier(ident):
        return ident.name
    kind = node_type(parent)
    if kind == "VariableDeclarator" and getattr(parent, "init", None) is node:
        target = getattr(parent, "id", None)
        if is_identifier(target):
            return target.name
    if kind == "AssignmentExpression" and getattr(parent, "right", None) is node:
        target = getattr(parent, "left", None)
        if is_identifier(target):
            return target.name
    return None
