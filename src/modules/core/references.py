"""Human-readable business reference numbers.

Format: ``<prefix><YYYYmmddHHMMSS><6 random digits>``, e.g.
``M20240115103045123456``.  Uniqueness is ultimately guaranteed by the
unique index on the owning column; callers retry on collision.
"""

from __future__ import annotations

import secrets

from django.utils import timezone

REFERENCE_MAX_RETRIES = 5


def generate_reference(prefix: str) -> str:
    now = timezone.localtime()
    suffix = f"{secrets.randbelow(1_000_000):06d}"
    return f"{prefix}{now:%Y%m%d%H%M%S}{suffix}"


def generate_unique_reference(model, field: str, prefix: str) -> str:
    """Generate a reference that is not yet used in ``model.<field>``.

    Raises ``RuntimeError`` after ``REFERENCE_MAX_RETRIES`` collisions.
    """
    for _ in range(REFERENCE_MAX_RETRIES):
        candidate = generate_reference(prefix)
        if not model.objects.filter(**{field: candidate}).exists():
            return candidate
    raise RuntimeError(
        f"Failed to generate unique {model.__name__}.{field} after "
        f"{REFERENCE_MAX_RETRIES} attempts"
    )
