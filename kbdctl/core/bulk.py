"""Best-effort processing of independent configuration sections."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from kbdctl.core.model import AggregateResult, SectionOutcome, SectionResult

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Section:
    """One configuration domain to apply.

    ``unavailable`` returns a reason when the domain cannot be written on this
    keyboard. ``apply`` validates and writes the payload and returns whether
    the change was persisted.
    """

    name: str
    payload: Any
    apply: Callable[[Any], bool]
    unavailable: Callable[[], str | None] = lambda: None


def process_sections(sections: Iterable[Section]) -> AggregateResult:
    results: list[SectionResult] = []
    for section in sections:
        reason = section.unavailable()
        if reason is not None:
            LOGGER.debug("Skipping %s: %s", section.name, reason)
            results.append(SectionResult(section.name, SectionOutcome.SKIPPED, reason))
            continue
        try:
            persisted = section.apply(section.payload)
        except Exception as exc:
            LOGGER.debug("Section %s failed", section.name, exc_info=True)
            results.append(SectionResult(section.name, SectionOutcome.FAILED, str(exc)))
            continue
        if persisted:
            results.append(SectionResult(section.name, SectionOutcome.SUCCEEDED))
        else:
            results.append(
                SectionResult(section.name, SectionOutcome.WARNING, "written but not persisted")
            )
    return aggregate(results)


def aggregate(results: Iterable[SectionResult]) -> AggregateResult:
    results = tuple(results)
    attempted = [r for r in results if r.outcome is not SectionOutcome.SKIPPED]
    succeeded = sum(
        1 for r in attempted if r.outcome in (SectionOutcome.SUCCEEDED, SectionOutcome.WARNING)
    )
    if succeeded == len(attempted):
        status = SectionOutcome.SUCCEEDED
    elif succeeded:
        status = SectionOutcome.PARTIAL
    else:
        status = SectionOutcome.FAILED
    return AggregateResult(
        results=results, status=status, succeeded=succeeded, attempted=len(attempted)
    )


def summarize(result: AggregateResult) -> list[str]:
    lines = []
    for section in result.results:
        detail = f": {section.detail}" if section.detail else ""
        lines.append(f"  {section.section}: {section.outcome.value}{detail}")
    if result.status is SectionOutcome.PARTIAL:
        lines.append(f"Upload partially succeeded ({result.succeeded} of {result.attempted} sections).")
    elif result.status is SectionOutcome.FAILED:
        lines.append("Upload failed.")
    else:
        lines.append("Upload completed successfully.")
    return lines
