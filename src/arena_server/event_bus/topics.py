"""Topic pattern validation and matching.

Topics are dot-delimited, hierarchical names: ``<module>.<entity>.<action>``.
A subscription pattern is either an exact topic or a prefix followed by a
trailing wildcard segment:

    >>> topic_matches("matches.match.created", "matches.match.created")
    True
    >>> topic_matches("users.*", "users.friend.added")
    True
    >>> topic_matches("users.*", "usersx.foo")
    False
    >>> topic_matches("users.*", "users")
    False
    >>> topic_matches("*", "chat.message.sent")
    True

The wildcard boundary is always the segment separator; ``"users*"`` or
``"users.*.added"`` are rejected as patterns.
"""

from .core import HandlerRegistrationError

SEPARATOR = "."
WILDCARD = "*"
MATCH_ALL = WILDCARD


def is_wildcard(pattern: str) -> bool:
    """Return True if the pattern ends with the wildcard segment."""
    return pattern == MATCH_ALL or pattern.endswith(SEPARATOR + WILDCARD)


def wildcard_prefix(pattern: str) -> str:
    """Return the literal prefix of a wildcard pattern, separator included.

    ``"users.*"`` -> ``"users."``, ``"*"`` -> ``""``.
    """
    return pattern[: -len(WILDCARD)]


def validate_pattern(pattern: str) -> str:
    """Validate a subscription pattern.

    Args:
        pattern: Exact topic, ``<prefix>.*`` or ``*``

    Returns:
        The pattern, unchanged

    Raises:
        HandlerRegistrationError: If the pattern is empty, has empty segments
            or uses the wildcard anywhere but as the whole final segment
    """
    if not isinstance(pattern, str) or not pattern.strip():
        raise HandlerRegistrationError(f"Subscription pattern must be a non-empty string, got: {pattern!r}")

    if pattern == MATCH_ALL:
        return pattern

    segments = pattern.split(SEPARATOR)
    if any(not segment for segment in segments):
        raise HandlerRegistrationError(f"Subscription pattern has an empty segment: {pattern!r}")

    for segment in segments[:-1]:
        if WILDCARD in segment:
            raise HandlerRegistrationError(f"Wildcard is only allowed as the final segment: {pattern!r}")

    last = segments[-1]
    if WILDCARD in last and last != WILDCARD:
        raise HandlerRegistrationError(f"Wildcard must be a whole segment: {pattern!r}")

    return pattern


def topic_matches(pattern: str, topic: str) -> bool:
    """Check whether a topic matches a subscription pattern.

    Args:
        pattern: A validated subscription pattern
        topic: A published topic

    Returns:
        True if the pattern selects the topic
    """
    if not topic:
        return False
    if pattern == MATCH_ALL:
        return True
    if is_wildcard(pattern):
        prefix = wildcard_prefix(pattern)
        return topic.startswith(prefix) and len(topic) > len(prefix)
    return pattern == topic


def module_pattern(module_name: str) -> str:
    """Return the wildcard pattern selecting every topic of a module."""
    return f"{module_name}{SEPARATOR}{WILDCARD}"
