# buildflow/core/validation.py
"""
Post-turn auto-validation: an audit exchange over the draft, then a short
summary of the most important findings. Both exchanges are best effort.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from buildfs import FileSnapshot

from .collaborators import IModelBackend
from .models import HistoryEntry
from .prompts import PromptRenderer

logger = logging.getLogger(__name__)

AUDIT_CATEGORIES = ("bugs", "security", "improvements", "features")
MAX_SUMMARY_FINDINGS = 4

LOOKS_SOLID_MESSAGE = "I've finished the changes and ran an automated code review. The code looks solid!"
VALIDATION_FAILED_MESSAGE = "The automated code review could not be completed this time."


@dataclass
class ValidationReport:
    message: str
    findings: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    succeeded: bool = True

    @property
    def finding_count(self) -> int:
        return sum(len(v) for v in self.findings.values())


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = text.splitlines()[1:]
        if lines and lines[-1].strip().startswith("```"):
            lines = lines[:-1]
        text = "\n".join(lines).strip()
    return text


def parse_audit(text: str) -> Dict[str, List[Dict[str, Any]]]:
    """
    Accepts a bare ``{"bugs": [...], ...}`` object or an
    ``{"type": "analysis_result", "data": {...}}`` line anywhere in the text.
    """
    candidates = [_strip_fences(text)] + [line.strip() for line in text.splitlines() if line.strip()]
    for candidate in candidates:
        try:
            obj = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict) and obj.get("type") == "analysis_result":
            obj = obj.get("data")
        if isinstance(obj, dict) and any(k in obj for k in AUDIT_CATEGORIES):
            return {
                key: [f for f in (obj.get(key) or []) if isinstance(f, dict)]
                for key in AUDIT_CATEGORIES
            }
    raise ValueError("Audit response did not contain an analysis result")


def top_findings(findings: Dict[str, List[Dict[str, Any]]], limit: int = MAX_SUMMARY_FINDINGS):
    ordered = [f for key in AUDIT_CATEGORIES for f in findings.get(key, [])]
    return ordered[:limit]


class AutoValidationSupervisor:
    def __init__(
        self,
        backend: IModelBackend,
        prompts: Optional[PromptRenderer] = None,
        audit_model: Optional[str] = None,
        summary_model: Optional[str] = None,
    ):
        self.backend = backend
        self.prompts = prompts or PromptRenderer()
        self.audit_model = audit_model
        self.summary_model = summary_model

    async def validate(self, snapshot: FileSnapshot) -> ValidationReport:
        try:
            raw = await self.backend.complete(
                [HistoryEntry.user(self.prompts.audit(snapshot))], snapshot, model=self.audit_model
            )
            findings = parse_audit(raw)
        except Exception as e:
            logger.warning("Audit exchange failed: %s", e)
            return ValidationReport(VALIDATION_FAILED_MESSAGE, succeeded=False)

        counts = {key: len(findings[key]) for key in AUDIT_CATEGORIES}
        if not any(counts.values()):
            return ValidationReport(LOOKS_SOLID_MESSAGE, findings)

        try:
            summary = await self.backend.complete(
                [HistoryEntry.user(self.prompts.audit_summary(top_findings(findings), counts))],
                snapshot,
                model=self.summary_model,
            )
        except Exception as e:
            logger.warning("Audit summary exchange failed: %s", e)
            return ValidationReport(VALIDATION_FAILED_MESSAGE, findings, succeeded=False)

        summary = summary.strip()
        if not summary:
            return ValidationReport(VALIDATION_FAILED_MESSAGE, findings, succeeded=False)
        return ValidationReport(summary, findings)
