# wireflow/orchestration/enrichment.py
"""
Enrichment Decision Engine

Decides whether the two optional enrichment agents (visual-ux-advisor,
variant-differentiator) are worth running, by scoring the brief analysis.

Scoring is pure and deterministic: the same analysis always yields the same
score and reasons. Vocabularies live on the scorer classes so they can be
swapped without touching the scheduler.
"""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Pattern, Tuple

from wireflow.agents.registry import VARIANT_AGENT, VISUAL_AGENT
from wireflow.core.config import settings
from wireflow.core.logging import log
from wireflow.orchestration.state import WorkflowState, set_metadata, set_pending_agents


RUN = "run"
SKIP = "skip"


@dataclass(frozen=True)
class ScoreResult:
    score: int
    reasons: Tuple[str, ...] = ()


class Scorer(ABC):
    """One scoring axis over a brief analysis document."""

    max_score: int = 5

    @abstractmethod
    def score(self, analysis: Optional[Mapping[str, Any]]) -> ScoreResult:
        pass


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _sections(analysis: Mapping[str, Any]) -> List[Dict[str, Any]]:
    sections = analysis.get("sectionStructure")
    if not isinstance(sections, list):
        return []
    return [s for s in sections if isinstance(s, dict)]


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _non_blank(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


# ═══════════════════════════════════════════════════════════════════
# VISUAL AXIS
# ═══════════════════════════════════════════════════════════════════

class VisualScorer(Scorer):
    """One point per visual-guidance category already present in the analysis."""

    CATEGORIES: Tuple[Tuple[str, Pattern], ...] = (
        ("layout-notes", re.compile(r"\b(layout|grid|column|flex)\b")),
        ("interaction-patterns", re.compile(r"\b(interaction|sticky|animation|hover|scroll|transition)\b")),
        ("responsive-guidance", re.compile(r"\b(responsive|mobile|tablet|breakpoint|device)\b")),
        ("accessibility", re.compile(r"\b(accessibility|wcag|contrast|aria|screen.?reader|a11y)\b")),
        ("visual-hierarchy", re.compile(r"\b(hierarchy|emphasis|prominence|weight|focal|z-index)\b")),
    )
    max_score = len(CATEGORIES)

    def score(self, analysis: Optional[Mapping[str, Any]]) -> ScoreResult:
        if not analysis:
            return ScoreResult(0, ("missing-analysis",))

        content = _as_dict(analysis.get("contentRequirements"))
        overview = _as_dict(analysis.get("projectOverview"))
        sections = _sections(analysis)

        # Free-text fields only; property names in serialized JSON would match the vocabulary
        fields = [
            _text(content.get("visualUxNotes")),
            _text(content.get("layoutPreferences")),
            _text(content.get("interactionNotes")),
            _text(content.get("designDirection")),
            _text(overview.get("visualDirection")),
            _text(overview.get("designNotes")),
            *(_text(s.get("visualNotes")) for s in sections),
            *(_text(s.get("layoutHints")) for s in sections),
        ]
        combined = " ".join(fields).lower()

        reasons = [name for name, pattern in self.CATEGORIES if pattern.search(combined)]
        return ScoreResult(min(len(reasons), self.max_score), tuple(reasons))


# ═══════════════════════════════════════════════════════════════════
# VARIANT AXIS
# ═══════════════════════════════════════════════════════════════════

class VariantScorer(Scorer):
    """How fully the analysis already differentiates its variants."""

    max_score = 5
    MIN_VARIANT_COUNT = 3
    HINT_SCORE = 2

    def score(self, analysis: Optional[Mapping[str, Any]]) -> ScoreResult:
        if not analysis:
            return ScoreResult(0, ("missing-analysis",))

        outline = _as_dict(analysis.get("routingInputs")).get("variantOutline")
        sections = _sections(analysis)
        content = _as_dict(analysis.get("contentRequirements"))

        has_variant_notes = any(
            bool(s.get("variantNotes")) or bool(s.get("variantSpecific"))
            for s in sections
        )
        has_preferences = bool(content.get("variantPreferences"))

        if not isinstance(outline, list) or not outline:
            if has_variant_notes or has_preferences:
                return ScoreResult(self.HINT_SCORE, ("variant-hints-in-sections",))
            return ScoreResult(0, ("missing-outline",))

        entries = [_as_dict(v) for v in outline]
        score = 0
        reasons: List[str] = []

        if len(entries) >= self.MIN_VARIANT_COUNT:
            score += 1
            reasons.append("variant-count")
        if all(_non_blank(v.get("name")) for v in entries):
            score += 1
            reasons.append("names-present")
        if all(_non_blank(v.get("targetSegment")) for v in entries):
            score += 1
            reasons.append("target-segments-defined")
        if all(_non_blank(v.get("differentiator")) for v in entries):
            score += 1
            reasons.append("differentiators-defined")
        if any(_non_blank(v.get("hypothesis")) for v in entries):
            score += 1
            reasons.append("hypotheses-present")

        if has_variant_notes and score < self.max_score:
            score += 1
            reasons.append("section-variant-notes")

        return ScoreResult(min(score, self.max_score), tuple(reasons))


# ═══════════════════════════════════════════════════════════════════
# DECISION ENGINE
# ═══════════════════════════════════════════════════════════════════

@dataclass
class EnrichmentDecision:
    visual: str
    variant: str
    visual_score: ScoreResult
    variant_score: ScoreResult

    def to_metadata(self) -> Dict[str, Any]:
        return {
            "computed": True,
            "visual": self.visual,
            "variant": self.variant,
            "visualScore": self.visual_score.score,
            "visualReasons": list(self.visual_score.reasons),
            "variantScore": self.variant_score.score,
            "variantReasons": list(self.variant_score.reasons),
        }


def threshold_decision(score: int, threshold: int) -> str:
    return RUN if score < threshold else SKIP


@dataclass
class EnrichmentDecisionEngine:
    visual_scorer: Scorer = field(default_factory=VisualScorer)
    variant_scorer: Scorer = field(default_factory=VariantScorer)
    visual_threshold: int = field(default_factory=lambda: settings.enrichment.visual_threshold)
    variant_threshold: int = field(default_factory=lambda: settings.enrichment.variant_threshold)

    def evaluate(
        self,
        analysis: Optional[Mapping[str, Any]],
        options: Optional[Mapping[str, Any]] = None,
    ) -> EnrichmentDecision:
        """Score both axes and apply the flags. A force flag beats a skip flag."""
        options = options or {}
        visual_score = self.visual_scorer.score(analysis)
        variant_score = self.variant_scorer.score(analysis)

        visual = threshold_decision(visual_score.score, self.visual_threshold)
        variant = threshold_decision(variant_score.score, self.variant_threshold)

        if options.get("forceVisual"):
            visual = RUN
        elif options.get("skipVisual"):
            visual = SKIP
        if options.get("forceVariant"):
            variant = RUN
        elif options.get("skipVariant"):
            variant = SKIP

        return EnrichmentDecision(visual, variant, visual_score, variant_score)

    def decide(
        self,
        state: WorkflowState,
        analysis: Optional[Mapping[str, Any]],
        options: Optional[Mapping[str, Any]] = None,
    ) -> WorkflowState:
        """
        Cache the decision in state metadata and prune skipped agents from
        pending. A state whose decision is already computed is returned as is.
        """
        cached = state.metadata.get("enrichmentDecisions") or {}
        if cached.get("computed"):
            return state

        decision = self.evaluate(analysis, options)
        log(
            "ENRICHMENT",
            f"visual={decision.visual} ({decision.visual_score.score}), "
            f"variant={decision.variant} ({decision.variant_score.score})",
            data={"visual": decision.visual_score.reasons, "variant": decision.variant_score.reasons},
            project_id=state.project_slug,
        )

        state = set_metadata(state, {"enrichmentDecisions": decision.to_metadata()})
        skipped = set()
        if decision.visual == SKIP:
            skipped.add(VISUAL_AGENT)
        if decision.variant == SKIP:
            skipped.add(VARIANT_AGENT)
        return set_pending_agents(state, [name for name in state.pending_agents if name not in skipped])
