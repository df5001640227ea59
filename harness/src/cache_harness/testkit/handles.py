from __future__ import annotations

import itertools

_session_ids = itertools.count(1)


class SessionHandle:
    """
    Stand-in for a live host object (compilation, semantic model, connection).

    Compares by identity only, so a step output holding one can never be reused.
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self.session_id = next(_session_ids)

    def __repr__(self) -> str:
        return f"SessionHandle({self.label!r}, session={self.session_id})"


class SyntaxHandle(SessionHandle):
    pass
