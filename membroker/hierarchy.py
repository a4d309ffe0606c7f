from __future__ import annotations

import threading
from typing import Dict, List, Tuple

_chains: Dict[type, Tuple[type, ...]] = {}
_chains_lock = threading.Lock()


def type_chain(tp: type) -> Tuple[type, ...]:
    """Return the dispatch chain for ``tp``: ancestors, then mixins, then ``tp``.

    Chains are computed once per type and cached for the life of the process.
    """
    chain = _chains.get(tp)
    if chain is not None:
        return chain

    if not isinstance(tp, type):
        raise TypeError(f"Expected a class, got {tp!r}")

    with _chains_lock:
        chain = _chains.get(tp)
        if chain is None:
            chain = tuple(_find_chain(tp))
            _chains[tp] = chain
        return chain


def _find_chain(tp: type) -> List[type]:
    types: List[type] = []
    if tp.__bases__:
        types.extend(_find_chain(tp.__bases__[0]))

    # Secondary bases and anything they bring in through the MRO.
    for cls in tp.__mro__[1:]:
        if cls not in types:
            types.append(cls)

    types.append(tp)
    return types
