"""Validation gate: name filter plus per-candidate validation."""

import logging
from collections.abc import Callable

from rapidfuzz import fuzz, process

from skillport.core.rules import validate_manifest
from skillport.models import Candidate, Diagnostic, Diagnostics, GateResult, Manifest, RejectedCandidate

logger = logging.getLogger("skillport.gate")

# Minimum WRatio for a discovered name to be offered as a suggestion
SUGGESTION_CUTOFF = 60.0
MAX_SUGGESTIONS = 3

Validator = Callable[[Manifest], Diagnostics]


def suggest_names(requested: str, available: list[str]) -> list[str]:
    """Close matches for a requested skill name, best first."""
    if not available:
        return []
    matches = process.extract(
        requested,
        available,
        scorer=fuzz.WRatio,
        limit=MAX_SUGGESTIONS,
        score_cutoff=SUGGESTION_CUTOFF,
    )
    return [name for name, _score, _idx in matches]


def filter_candidates(
    candidates: list[Candidate],
    validate_fn: Validator = validate_manifest,
    names: list[str] | None = None,
    enabled: bool = True,
) -> GateResult:
    """Split candidates into installable and rejected.

    When ``names`` is given, only candidates whose name is listed are kept;
    requested names that match nothing are reported with suggestions. The
    filter runs before validation, so a rejected skill that was not asked for
    is never reported. Each candidate is validated on its own: a validator
    that raises rejects that candidate only.
    """
    result = GateResult()

    selected = candidates
    if names:
        wanted = list(dict.fromkeys(names))
        present = {c.name for c in candidates}
        selected = [c for c in candidates if c.name in wanted]
        available = sorted(present)
        for name in wanted:
            if name not in present:
                result.unmatched.append(name)
                result.suggestions[name] = suggest_names(name, available)
        if result.unmatched:
            logger.warning("Requested skill(s) not found: %s", ", ".join(result.unmatched))

    for candidate in selected:
        if not enabled:
            result.installable.append(candidate)
            continue
        try:
            diagnostics = validate_fn(candidate.manifest)
        except Exception as e:
            logger.error("Validator crashed on '%s': %s", candidate.name, e)
            diagnostics = Diagnostics(
                errors=[Diagnostic(rule="validator", message=f"Validator error: {e}", path=str(candidate.root))]
            )

        if diagnostics.ok:
            result.installable.append(candidate)
        else:
            logger.warning(
                "Rejected '%s': %s", candidate.name, "; ".join(d.message for d in diagnostics.errors)
            )
            result.rejected.append(RejectedCandidate(candidate=candidate, diagnostics=diagnostics))

    return result
