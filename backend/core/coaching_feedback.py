"""
Coaching Feedback
Turns detected shots into coaching text with an LLM.
Supports the direct Google Gemini API and Anthropic-compatible proxies.

When no provider is configured, or every attempt fails, feedback is built
from the rule-based shot feedback and the session statistics so callers
always get an answer.
"""

import json
import logging
import re
import time
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import google.generativeai as genai
from anthropic import Anthropic

from .models import ShotAnalysis, ShotOutcome
from config.settings import Settings, get_settings
from exceptions import FeedbackGenerationError, InsufficientData

logger = logging.getLogger(__name__)


# Model used when talking to an Anthropic-compatible proxy
ANTHROPIC_MODEL = "claude-sonnet-4-5"

GENERATION_CONFIG = {
    "temperature": 0.7,
    "top_p": 0.8,
    "max_output_tokens": 1000,
}

MAX_ATTEMPTS = 3

DEFAULT_CONFIDENCE = 7

SHOT_ANALYSIS_PROMPT = """You are an expert basketball shooting coach. Analyze this shot data and provide detailed coaching feedback.

Shot Details:
- Type: {shot_type}
- Outcome: {outcome}
- Confidence: {confidence:.1f}%
- Shot Arc: {arc:.1f}°

Shooting Form Analysis:
- Elbow Alignment: {elbow:.1f}%
- Shoulder Square: {shoulders:.1f}%
- Knee Bend: {knees:.1f}%
- Balance: {balance:.1f}%
- Follow Through: {follow_through:.1f}%
- Overall Form Score: {overall:.1f}%

Provide:
1. Detailed technical feedback (2-3 specific improvements)
2. What they did well (positive reinforcement)
3. One primary focus area for next shot
4. Confidence level in your assessment (1-10)

Keep feedback concise, actionable, and encouraging. Focus on the most impactful improvements.

Format your response as JSON:
{{
    "detailed_feedback": "...",
    "positive_aspects": "...",
    "primary_focus": "...",
    "confidence": 8,
    "technical_notes": "..."
}}"""

SESSION_SUMMARY_PROMPT = """You are an expert basketball coach analyzing a complete shooting session. Provide comprehensive insights and recommendations.

Session Statistics:
- Total Shots: {total}
- Made Shots: {made}
- Accuracy: {accuracy:.1f}%
- Average Form Score: {avg_form:.1f}%
- Shot Types: {breakdown}

Detailed Shot Data:
{shot_lines}

Provide:
1. Overall performance assessment
2. Key strengths identified
3. Main areas for improvement (prioritized)
4. Specific drills or exercises to recommend
5. Goals for next session
6. Progression indicators to track

Format as JSON:
{{
    "overall_assessment": "...",
    "key_strengths": ["...", "..."],
    "improvement_areas": ["...", "..."],
    "recommended_drills": ["...", "..."],
    "next_session_goals": ["...", "..."],
    "tracking_metrics": ["...", "..."]
}}"""

# Drill suggested for each weak form dimension in rule-based summaries
FORM_DRILLS = {
    "elbow_alignment": "One-hand form shooting close to the rim",
    "shoulder_square": "Catch-and-square footwork drill",
    "knee_flexion": "Chair shooting to groove the leg drive",
    "follow_through": "Hold the follow-through until the ball lands",
    "balance": "Hop-into-shot balance drill",
}

FORM_LABELS = {
    "elbow_alignment": "elbow alignment",
    "shoulder_square": "squared shoulders",
    "knee_flexion": "knee bend",
    "follow_through": "follow-through",
    "balance": "balance",
}


@dataclass
class EnhancedShotFeedback:
    detailed_feedback: str
    positive_aspects: str
    primary_focus: str
    confidence: int = DEFAULT_CONFIDENCE
    technical_notes: str = ""
    source: str = "rule-based"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionSummary:
    overall_assessment: str
    key_strengths: List[str] = field(default_factory=list)
    improvement_areas: List[str] = field(default_factory=list)
    recommended_drills: List[str] = field(default_factory=list)
    next_session_goals: List[str] = field(default_factory=list)
    tracking_metrics: List[str] = field(default_factory=list)
    statistics: Dict[str, Any] = field(default_factory=dict)
    source: str = "rule-based"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def session_statistics(shots: List[ShotAnalysis]) -> Dict[str, Any]:
    """Figures the session summary is built from"""
    total = len(shots)
    made = sum(1 for s in shots if s.outcome == ShotOutcome.MADE)
    return {
        "total_shots": total,
        "made_shots": made,
        "accuracy": (made / total * 100) if total else 0.0,
        "average_form_score": (sum(s.shooting_form.overall_score for s in shots) / total * 100) if total else 0.0,
        "shot_types": dict(Counter(s.shot_type.value for s in shots)),
    }


def build_shot_prompt(shot: ShotAnalysis) -> str:
    form = shot.shooting_form
    return SHOT_ANALYSIS_PROMPT.format(
        shot_type=shot.shot_type.value,
        outcome=shot.outcome.value,
        confidence=shot.confidence * 100,
        arc=shot.arc_angle,
        elbow=form.elbow_alignment * 100,
        shoulders=form.shoulder_square * 100,
        knees=form.knee_flexion * 100,
        balance=form.balance * 100,
        follow_through=form.follow_through * 100,
        overall=form.overall_score * 100,
    )


def build_session_prompt(shots: List[ShotAnalysis]) -> str:
    stats = session_statistics(shots)
    breakdown = ", ".join(f"{name}: {count}" for name, count in stats["shot_types"].items())
    shot_lines = "\n".join(
        f"Shot {i}: {s.shot_type.value} - {s.outcome.value} (Form: {s.shooting_form.overall_score * 100:.0f}%)"
        for i, s in enumerate(shots, start=1)
    )
    return SESSION_SUMMARY_PROMPT.format(
        total=stats["total_shots"],
        made=stats["made_shots"],
        accuracy=stats["accuracy"],
        avg_form=stats["average_form_score"],
        breakdown=breakdown,
        shot_lines=shot_lines,
    )


def parse_json_reply(text: str) -> Dict[str, Any]:
    """
    Extract the JSON object from an LLM reply. Models often wrap JSON in
    markdown fences or add a sentence before it.

    Raises:
        FeedbackGenerationError: no JSON object could be parsed
    """
    if not text:
        raise FeedbackGenerationError("Empty response from model")

    fenced = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", text, re.DOTALL)
    candidate = fenced.group(1) if fenced else None
    if candidate is None:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise FeedbackGenerationError("No JSON object in model response")
        candidate = text[start:end + 1]

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise FeedbackGenerationError(f"Invalid JSON in model response: {e}")
    if not isinstance(data, dict):
        raise FeedbackGenerationError("Model response JSON is not an object")
    return data


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


def _form_dimensions(shot: ShotAnalysis) -> Dict[str, float]:
    form = shot.shooting_form
    return {
        "elbow_alignment": form.elbow_alignment,
        "shoulder_square": form.shoulder_square,
        "knee_flexion": form.knee_flexion,
        "follow_through": form.follow_through,
        "balance": form.balance,
    }


class CoachingFeedback:
    """
    LLM-backed coaching feedback for single shots and whole sessions.
    """

    def __init__(self, settings: Optional[Settings] = None, retry_delay: float = 1.0):
        self.settings = settings or get_settings()
        self.provider = self.settings.LLM_PROVIDER
        self.retry_delay = retry_delay

        self.genai_model = None
        self.anthropic_client = None

        if not self.settings.llm_configured:
            logger.info("No LLM provider configured, using rule-based coaching feedback")
        elif self.provider == "anthropic" or "proxy" in self.provider:
            self.anthropic_client = Anthropic(
                api_key=self.settings.GOOGLE_API_KEY or "dummy",
                base_url=self.settings.LLM_PROXY_URL
            )
            logger.info(f"Initialized Anthropic client with proxy: {self.settings.LLM_PROXY_URL}")
        else:
            genai.configure(api_key=self.settings.GOOGLE_API_KEY)
            self.genai_model = genai.GenerativeModel(
                self.settings.LLM_MODEL,
                generation_config=GENERATION_CONFIG
            )
            logger.info(f"Gemini model initialized ({self.settings.LLM_MODEL})")

    @property
    def available(self) -> bool:
        return self.anthropic_client is not None or self.genai_model is not None

    @property
    def model_name(self) -> str:
        if self.anthropic_client:
            return "anthropic"
        if self.genai_model:
            return "gemini"
        return "rule-based"

    def _generate(self, prompt: str) -> str:
        """Single LLM call, returns the reply text"""
        if self.anthropic_client:
            response = self.anthropic_client.messages.create(
                model=ANTHROPIC_MODEL,
                max_tokens=GENERATION_CONFIG["max_output_tokens"],
                temperature=GENERATION_CONFIG["temperature"],
                messages=[{"role": "user", "content": prompt}]
            )
            return response.content[0].text
        response = self.genai_model.generate_content(prompt)
        return response.text

    def _generate_json(self, prompt: str, purpose: str) -> Dict[str, Any]:
        """
        Call the model with retries and exponential backoff.

        Raises:
            FeedbackGenerationError: all attempts failed
        """
        last_error: Optional[Exception] = None
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                return parse_json_reply(self._generate(prompt))
            except Exception as e:
                last_error = e
                logger.warning(
                    f"{purpose} attempt {attempt}/{MAX_ATTEMPTS} failed: {e}",
                    extra={"provider": self.model_name, "attempt": attempt}
                )
                if attempt < MAX_ATTEMPTS and self.retry_delay > 0:
                    time.sleep(self.retry_delay * 2 ** (attempt - 1))
        raise FeedbackGenerationError(f"{purpose} failed after {MAX_ATTEMPTS} attempts: {last_error}")

    # ------------------------------------------------------------------
    # Single shot
    # ------------------------------------------------------------------

    def rule_based_shot_feedback(self, shot: ShotAnalysis) -> EnhancedShotFeedback:
        dims = _form_dimensions(shot)
        best = max(dims, key=dims.get)
        worst = min(dims, key=dims.get)
        first_sentence = shot.feedback.split(". ")[0].rstrip(".")

        return EnhancedShotFeedback(
            detailed_feedback=shot.feedback,
            positive_aspects=f"Your {FORM_LABELS[best]} looked strongest on this shot.",
            primary_focus=first_sentence if dims[worst] < 1.0 else "Continue practicing consistent form",
            confidence=DEFAULT_CONFIDENCE,
            technical_notes=(
                f"Arc {shot.arc_angle:.1f}°, form score {shot.shooting_form.overall_score * 100:.0f}%, "
                f"detection confidence {shot.confidence * 100:.0f}%"
            ),
            source="rule-based",
        )

    def enhance_shot(self, shot: ShotAnalysis) -> EnhancedShotFeedback:
        """Detailed coaching feedback for one shot"""
        if not self.available:
            return self.rule_based_shot_feedback(shot)

        try:
            data = self._generate_json(build_shot_prompt(shot), "Shot analysis")
        except FeedbackGenerationError as e:
            logger.error(f"Falling back to rule-based shot feedback: {e.message}")
            return self.rule_based_shot_feedback(shot)

        confidence = data.get("confidence", DEFAULT_CONFIDENCE)
        if not isinstance(confidence, int) or isinstance(confidence, bool):
            confidence = DEFAULT_CONFIDENCE

        return EnhancedShotFeedback(
            detailed_feedback=str(data.get("detailed_feedback") or "No detailed feedback available"),
            positive_aspects=str(data.get("positive_aspects") or "Good shooting form overall"),
            primary_focus=str(data.get("primary_focus") or "Continue practicing consistent form"),
            confidence=confidence,
            technical_notes=str(data.get("technical_notes") or ""),
            source=self.model_name,
        )

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def rule_based_summary(self, shots: List[ShotAnalysis]) -> SessionSummary:
        stats = session_statistics(shots)

        # Average each form dimension across the session
        averages = {
            name: sum(_form_dimensions(s)[name] for s in shots) / len(shots)
            for name in FORM_LABELS
        }
        ranked = sorted(averages, key=averages.get, reverse=True)
        strengths = [FORM_LABELS[name] for name in ranked if averages[name] >= 0.7]
        weaknesses = [FORM_LABELS[name] for name in reversed(ranked) if averages[name] < 0.7]
        drills = [FORM_DRILLS[name] for name in reversed(ranked) if averages[name] < 0.7][:3]

        accuracy = stats["accuracy"]
        return SessionSummary(
            overall_assessment=(
                f"{stats['made_shots']} of {stats['total_shots']} shots made ({accuracy:.0f}%) "
                f"with an average form score of {stats['average_form_score']:.0f}%."
            ),
            key_strengths=strengths,
            improvement_areas=weaknesses,
            recommended_drills=drills,
            next_session_goals=[f"Raise accuracy above {min(100, int(accuracy) + 10)}%"],
            tracking_metrics=["accuracy", "average form score", "shot arc"],
            statistics=stats,
            source="rule-based",
        )

    def summarize_session(self, shots: List[ShotAnalysis]) -> SessionSummary:
        """
        Coaching summary of a whole session.

        Raises:
            InsufficientData: no shots were detected
        """
        if not shots:
            raise InsufficientData("No shots to analyze")

        if not self.available:
            return self.rule_based_summary(shots)

        try:
            data = self._generate_json(build_session_prompt(shots), "Session summary")
        except FeedbackGenerationError as e:
            logger.error(f"Falling back to rule-based session summary: {e.message}")
            return self.rule_based_summary(shots)

        return SessionSummary(
            overall_assessment=str(data.get("overall_assessment") or "Session completed"),
            key_strengths=_str_list(data.get("key_strengths")),
            improvement_areas=_str_list(data.get("improvement_areas")),
            recommended_drills=_str_list(data.get("recommended_drills")),
            next_session_goals=_str_list(data.get("next_session_goals")),
            tracking_metrics=_str_list(data.get("tracking_metrics")),
            statistics=session_statistics(shots),
            source=self.model_name,
        )
