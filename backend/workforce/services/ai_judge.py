"""
AI Judge Service - LLM-Powered Skill Maps, CV Analysis, Fit and Risk

This service uses OpenAI chat completions in JSON mode to produce the four
structured judgments the platform depends on:

- generate_skill_map: milestone text -> SkillMap
- analyze_cv_text: CV text -> CVAnalysis
- calculate_fit_score: candidate skills/experience + SkillMap -> FitAnalysis
- predict_risk: milestone + delay -> RiskAnalysis

Call Path:
    AIJudge.method()
    ├── AIResponseCache lookup (redis, optional)
    ├── RateLimiter.execute_with_retry (process-wide, 30s spacing, 429 backoff)
    │   └── AsyncOpenAI.chat.completions.create(response_format=json_object)
    ├── JSON decode (markdown fences stripped)
    └── pydantic validation (scores rounded half-up and clamped)

Any failure (missing API key, timeout, non-429 error, exhausted 429 retries,
malformed JSON, schema mismatch) raises AIJudgeError. Callers never use the
judge directly; workforce.services.fit_scoring.score_or_fallback turns these
errors into deterministic fallbacks.

Usage:
    judge = get_ai_judge()
    skill_map = await judge.generate_skill_map("Backend API", "Build REST endpoints")
"""

import json
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from workforce.config import get_settings
from workforce.schemas.analysis import CVAnalysis, FitAnalysis, RiskAnalysis, SkillMap
from workforce.services.cache import AIResponseCache, CacheLayer, get_ai_cache, hash_content
from workforce.services.rate_limiter import RateLimiter, get_ai_rate_limiter

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# CV text beyond this is not sent to the model
MAX_CV_CHARS = 12000


class AIJudgeError(Exception):
    """The AI judge could not produce a valid judgment."""


SYSTEM_PROMPT = (
    "You are a technical recruiting analyst for a project staffing platform. "
    "Answer accurately and return only valid JSON."
)

SKILL_MAP_PROMPT = """Analyze this project milestone and extract structured skill requirements:

Milestone: {name}
Description: {description}

Extract and return:
1. Required technical skills (programming languages, frameworks, tools)
2. Experience level needed (Entry, Intermediate, Advanced, Expert)
3. Soft skills required (communication, problem-solving, etc.)

Return ONLY valid JSON in this exact format:
{{
  "milestone": "{name}",
  "required_skills": ["skill1", "skill2", "skill3"],
  "experience_level": "Intermediate",
  "soft_skills": ["soft_skill1", "soft_skill2"]
}}"""

CV_ANALYSIS_PROMPT = """Analyze this CV/resume text and extract the candidate's profile:

{text}

Extract and return:
1. Full name
2. Email address (if present)
3. Technical skills (programming languages, frameworks, tools)
4. Work experience summary
5. Education background
6. Soft skills
7. Domain expertise areas

Return ONLY valid JSON in this exact format:
{{
  "name": "Full Name",
  "email": "email@example.com",
  "skills": ["skill1", "skill2", "skill3"],
  "experience": "Brief summary of work experience",
  "education": "Education background",
  "soft_skills": ["soft_skill1", "soft_skill2"],
  "domain_expertise": ["domain1", "domain2"]
}}"""

FIT_SCORE_PROMPT = """Analyze the fit between this candidate and milestone requirements:

Candidate Skills: {skills}
Candidate Experience: {experience}

Milestone Requirements:
- Required Skills: {required_skills}
- Experience Level: {experience_level}
- Soft Skills: {soft_skills}

Calculate:
1. Skill Overlap (0-100): How many required skills does the candidate have?
2. Experience Match (0-100): Does their experience level match?
3. Soft Skill Relevance (0-100): Do they have relevant soft skills?
4. Overall Fit Score (0-100): Weighted average (60% skills, 30% experience, 10% soft skills)
5. Brief reasoning for the score

Return ONLY valid JSON:
{{
  "score": 85,
  "skill_overlap": 90,
  "experience_match": 80,
  "soft_skill_relevance": 75,
  "reasoning": "Brief explanation of why this score was given"
}}"""

RISK_PROMPT = """Analyze this project milestone for risk:

Milestone: {name}
Description: {description}
Estimated Hours: {estimated_hours}
Current Delay: {delay_percentage}%

Analyze the risk and provide:
1. Risk Level (low, medium, high)
2. Predicted Issues (what could go wrong)
3. Recommendations (how to mitigate)
4. Whether backup talent should be activated (true/false)

Risk criteria:
- Delay <10%: Low risk
- Delay 10-20%: Medium risk
- Delay >20%: High risk

Return ONLY valid JSON:
{{
  "risk_level": "high",
  "delay_percentage": {delay_percentage},
  "predicted_issues": ["issue1", "issue2"],
  "recommendations": ["recommendation1", "recommendation2"],
  "backup_required": true
}}"""

# Models occasionally answer in camelCase despite the prompt
FIT_KEY_ALIASES = {
    "skillOverlap": "skill_overlap",
    "experienceMatch": "experience_match",
    "softSkillRelevance": "soft_skill_relevance",
}


def parse_json_content(content: Optional[str]) -> Dict[str, Any]:
    """
    Decode a JSON object from an LLM response.

    Raises:
        AIJudgeError: Empty content, invalid JSON or a non-object payload
    """
    if not content or not content.strip():
        raise AIJudgeError("Empty response from AI judge")

    content = content.strip()

    # Handle markdown code blocks
    if content.startswith("```"):
        lines = content.split("\n")
        content = "\n".join(lines[1:-1])

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse AI response as JSON: {content[:100]}")
        raise AIJudgeError(f"Invalid JSON from AI judge: {e}") from e

    if not isinstance(data, dict):
        raise AIJudgeError("AI judge returned a non-object JSON payload")
    return data


class AIJudge:
    """
    OpenAI-backed judge for skill maps, CVs, fit and risk.

    Attributes:
        client: AsyncOpenAI client (None when no API key is configured)
        model: Chat model name
        rate_limiter: Shared limiter every call is dispatched through
        cache: Optional redis cache for successful results
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        model: str = "gpt-4o-mini",
        rate_limiter: Optional[RateLimiter] = None,
        cache: Optional[AIResponseCache] = None,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
    ):
        self.client = client
        self.model = model
        self.rate_limiter = rate_limiter or get_ai_rate_limiter()
        self.cache = cache
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

    @property
    def available(self) -> bool:
        return self.client is not None

    async def _call_llm(self, prompt: str) -> Dict[str, Any]:
        """
        Send one JSON-mode completion through the rate limiter.

        Raises:
            AIJudgeError: On any failure, with the original error chained
        """
        if self.client is None:
            raise AIJudgeError("AI judge unavailable: no OpenAI API key configured")

        async def request():
            return await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0.1,  # Low temperature for consistent judgments
            )

        try:
            response = await self.rate_limiter.execute_with_retry(
                request,
                max_retries=self.max_retries,
                base_delay=self.retry_base_delay,
            )
        except Exception as e:
            logger.error(f"AI judge call failed: {e}")
            raise AIJudgeError(f"AI judge call failed: {e}") from e

        content = response.choices[0].message.content
        return parse_json_content(content)

    def _validate(self, model_cls: Type[ModelT], data: Dict[str, Any]) -> ModelT:
        try:
            return model_cls.model_validate(data)
        except ValidationError as e:
            raise AIJudgeError(f"AI judge returned an invalid {model_cls.__name__}: {e}") from e

    async def _cached_call(
        self,
        layer: CacheLayer,
        key: str,
        model_cls: Type[ModelT],
        prompt: str,
        transform=None,
    ) -> ModelT:
        if self.cache:
            cached = await self.cache.get(layer, key)
            if cached is not None:
                try:
                    return model_cls.model_validate(cached)
                except ValidationError:
                    logger.warning(f"Discarding corrupt {layer.prefix} cache entry {key}")

        data = await self._call_llm(prompt)
        if transform:
            data = transform(data)
        result = self._validate(model_cls, data)

        if self.cache:
            await self.cache.set(layer, key, result.model_dump())
        return result

    async def generate_skill_map(self, name: str, description: str) -> SkillMap:
        """Extract structured skill requirements from a milestone."""
        prompt = SKILL_MAP_PROMPT.format(name=name, description=description or "")
        key = hash_content(name, description or "")

        def ensure_name(data: Dict[str, Any]) -> Dict[str, Any]:
            data.setdefault("milestone", name)
            return data

        return await self._cached_call(CacheLayer.SKILL_MAP, key, SkillMap, prompt, ensure_name)

    async def analyze_cv_text(self, text: str) -> CVAnalysis:
        """Extract a candidate profile from CV text."""
        if not text or not text.strip():
            raise AIJudgeError("No CV text to analyze")
        text = text[:MAX_CV_CHARS]
        prompt = CV_ANALYSIS_PROMPT.format(text=text)
        return await self._cached_call(CacheLayer.CV_ANALYSIS, hash_content(text), CVAnalysis, prompt)

    async def calculate_fit_score(
        self,
        candidate_skills: List[str],
        candidate_experience: str,
        skill_map: SkillMap,
    ) -> FitAnalysis:
        """
        Judge candidate/milestone fit.

        Sub-scores are rounded half-up and clamped to [0, 100] by FitAnalysis.
        """
        prompt = FIT_SCORE_PROMPT.format(
            skills=", ".join(candidate_skills),
            experience=candidate_experience or "Not provided",
            required_skills=", ".join(skill_map.required_skills),
            experience_level=skill_map.experience_level or "Not specified",
            soft_skills=", ".join(skill_map.soft_skills) or "None specified",
        )
        key = hash_content(
            sorted(s.lower() for s in candidate_skills),
            candidate_experience or "",
            skill_map.model_dump(),
        )

        def normalize(data: Dict[str, Any]) -> Dict[str, Any]:
            for alias, field in FIT_KEY_ALIASES.items():
                if alias in data and field not in data:
                    data[field] = data.pop(alias)
            data["source"] = "ai"
            return data

        return await self._cached_call(CacheLayer.FIT_ANALYSIS, key, FitAnalysis, prompt, normalize)

    async def predict_risk(
        self,
        name: str,
        description: str,
        delay_percentage: int,
        estimated_hours: int,
    ) -> RiskAnalysis:
        """Predict delivery risk for a delayed milestone (not cached)."""
        prompt = RISK_PROMPT.format(
            name=name,
            description=description or "",
            estimated_hours=estimated_hours,
            delay_percentage=delay_percentage,
        )
        data = await self._call_llm(prompt)
        return self._validate(RiskAnalysis, data)


_judge_instance: Optional[AIJudge] = None


def get_ai_judge() -> AIJudge:
    """Get or create the AI judge singleton from settings."""
    global _judge_instance

    if _judge_instance is None:
        settings = get_settings()
        client = None
        if settings.openai_api_key:
            client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.ai_timeout_seconds,
            )
        else:
            logger.warning("OPENAI_API_KEY not set; every AI judgment will use the rule-based fallback")
        _judge_instance = AIJudge(
            client=client,
            model=settings.ai_model,
            rate_limiter=get_ai_rate_limiter(),
            cache=get_ai_cache(),
            max_retries=settings.ai_max_retries,
            retry_base_delay=settings.ai_retry_base_delay_seconds,
        )

    return _judge_instance
