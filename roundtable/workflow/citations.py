from typing import Iterable

from roundtable.workflow.state import Citation


def merge_citations(existing: Iterable[Citation], incoming: Iterable[Citation]) -> list[Citation]:
    """
    Merge incoming citations into existing ones, keyed by uri.

    Existing order comes first, then new arrivals in incoming order. On a
    duplicate uri the first-seen title wins. Neither argument is modified.
    """
    merged = list(existing)
    seen = {c.uri for c in merged}
    for citation in incoming:
        if citation.uri in seen:
            continue
        seen.add(citation.uri)
        merged.append(citation)
    return merged
