"""Tag keyword matching.

Conditions are applied left to right:
- condition 0 selects the initial set from every candidate
- AND narrows the running set to tags that also match the condition
- OR adds every candidate matching the condition, scanning the full
  candidate list again rather than the running set
"""
import logging
from typing import Iterable, Sequence

from ..errors import InputError
from ..schemas.bulk_ops import MatchMode, TagCondition, TagOperator


logger = logging.getLogger(__name__)

MIN_KEYWORD_LENGTH = 2


def _matches(tag: str, keyword: str, mode: MatchMode) -> bool:
    candidate = tag.lower()

    if mode == MatchMode.EXACT:
        return candidate == keyword
    if mode == MatchMode.START:
        return candidate.startswith(keyword)
    if mode == MatchMode.END:
        return candidate.endswith(keyword)
    return keyword in candidate


def _select(
    candidates: Sequence[str], condition: TagCondition, mode: MatchMode
) -> set[str]:
    keyword = condition.tag.strip().lower()
    if not keyword:
        raise InputError("Tag condition keyword must not be empty")
    return {tag for tag in candidates if _matches(tag, keyword, mode)}


def match_tags(
    candidate_tags: Iterable[str],
    conditions: Sequence[TagCondition],
    mode: MatchMode = MatchMode.CONTAIN,
) -> set[str]:
    """Filter candidate tags by a chain of AND/OR conditions.

    Args:
        candidate_tags: Tags to filter (duplicates are harmless)
        conditions: Non-empty condition chain; the first operator is ignored
        mode: Comparison applied to every condition

    Returns:
        Set of matching tags in their original casing

    Raises:
        InputError: If conditions is empty or a keyword is blank
    """
    if not conditions:
        raise InputError("At least one tag condition is required")

    candidates = list(candidate_tags)
    mode = MatchMode(mode)

    result = _select(candidates, conditions[0], mode)

    for condition in conditions[1:]:
        matches = _select(candidates, condition, mode)
        if condition.operator == TagOperator.AND:
            result &= matches
        else:
            result |= matches

    logger.debug(
        "Matched %s of %s tags (conditions=%s, mode=%s)",
        len(result),
        len(candidates),
        len(conditions),
        mode.value,
    )
    return result


def normalize_conditions(conditions: Iterable[TagCondition]) -> list[TagCondition]:
    """Drop blank keywords and reject keywords that are too short.

    Raises:
        InputError: If a keyword is a single character or nothing is left
    """
    cleaned: list[TagCondition] = []
    for condition in conditions:
        keyword = condition.tag.strip()
        if not keyword:
            continue
        if len(keyword) < MIN_KEYWORD_LENGTH:
            raise InputError(
                f"All entered tags must be at least {MIN_KEYWORD_LENGTH} "
                f"characters long (got '{keyword}')"
            )
        cleaned.append(TagCondition(tag=keyword, operator=condition.operator))

    if not cleaned:
        raise InputError("No conditions given")

    return cleaned
