from __future__ import annotations

import uuid


def _suffixes():
    letters = [chr(c) for c in range(ord("A"), ord("Z") + 1)]
    for a in letters:
        yield a
    for a in letters:
        for b in letters:
            yield a + b


def allocate_unique_id(existing: set[str], proposed: str) -> str:
    if proposed not in existing:
        return proposed
    for suf in _suffixes():
        candidate = f"{proposed}-{suf}"
        if candidate not in existing:
            return candidate
    # Beyond 702 collisions on one base, fall back to a random suffix.
    return f"{proposed}-{uuid.uuid4().hex[:8]}"


def new_milestone_id() -> str:
    return f"m-{uuid.uuid4().hex[:12]}"


def new_subtask_id() -> str:
    return f"s-{uuid.uuid4().hex[:12]}"
