from __future__ import annotations


class InvalidConfiguration(ValueError):
    """Raised before any task is dispatched when a policy is misconfigured."""


def validate_concurrency(concurrency: object) -> int:
    """Return ``concurrency`` when it is a positive ``int``.

    >>> validate_concurrency(4)
    4
    >>> validate_concurrency(0)
    Traceback (most recent call last):
    ...
    flowrun.errors.InvalidConfiguration: concurrency must be a positive integer, got 0
    """

    if isinstance(concurrency, bool) or not isinstance(concurrency, int):
        raise InvalidConfiguration(
            f"concurrency must be a positive integer, got {concurrency!r}"
        )
    if concurrency <= 0:
        raise InvalidConfiguration(
            f"concurrency must be a positive integer, got {concurrency!r}"
        )
    return concurrency


__all__ = ["InvalidConfiguration", "validate_concurrency"]
