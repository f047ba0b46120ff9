"""
Remote intent classification with a rule-based safety net.

Tries a prioritized list of text-generation providers to classify a
BehaviorProfile into the same shape the rule table produces:

1. OpenAI-compatible primary provider (AI_API_KEY / AI_BASE_URL, Groq-style)
2. OpenAI (OPENAI_API_KEY)
3. Anthropic Messages API (ANTHROPIC_API_KEY)

Each provider call is bounded by ``inference_timeout_seconds``. Response
parsing is defensive: strict JSON first, then per-field regex extraction,
with the rule table's values substituted for anything not recoverable.

Falls back to the BehaviorClassifier when:
- No provider is configured
- The feature flag is disabled
- Every configured provider fails (network, status, empty or unusable body)

``InferenceChain.classify`` never raises.
"""

import json
import re
import threading
import time
from typing import Any, Dict, List, Optional, Sequence

import httpx
from openai import OpenAI, OpenAIError

from config.settings import Settings, get_settings
from core.errors import InferenceParseError, InferenceProviderError
from core.logging import get_logger
from core.utils import clamp
from recs.behavior import BehaviorClassifier
from recs.models import BehaviorProfile, IntentClassification, IntentLabel

logger = get_logger(__name__)


_SYSTEM_PROMPT = (
    "You are an expert e-commerce behavior analyst. Return only valid JSON responses."
)

_LABELS = ", ".join(label.value for label in IntentLabel)


def build_prompt(profile: BehaviorProfile) -> str:
    """Natural-language prompt embedding the profile's summary statistics."""
    categories = ", ".join(profile.categories_seen) or "none"
    return f"""
Analyze this e-commerce shopper's behavior and classify the shopper type. Return ONLY valid JSON.

Behavior Data:
- Total interactions: {profile.total_interactions}
- Page visits: {profile.page_visits}
- Average hover duration: {round(profile.avg_hover_duration_ms)}ms
- Cart actions: {profile.cart_actions}
- Wishlist actions: {profile.wishlist_actions}
- Quick bounces: {profile.quick_bounces}
- Session duration: {round(profile.session_duration_ms / 1000)}s
- Average time between actions: {round(profile.avg_time_between_actions_ms)}ms
- Fast actions (<1s apart): {profile.fast_action_count}
- Slow actions (>10s apart): {profile.slow_action_count}
- Categories viewed: {categories}
- Sequence pattern: {profile.sequence_pattern or "none"}

Classify as one of: {_LABELS}

Return JSON:
{{
  "primaryPattern": "shopper_type",
  "confidence": 0.85,
  "indicators": ["specific behavioral indicator"],
  "predictedActions": ["likely next action"],
  "timeToConversion": 45,
  "expectedOrderValue": 75.50
}}"""


# =============================================================================
# Response Parsing
# =============================================================================

_CODE_FENCE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)

_FIELD_KEYS = {
    "label": ("primaryPattern", "primary_pattern", "label"),
    "confidence": ("confidence",),
    "indicators": ("indicators",),
    "predicted_actions": ("predictedActions", "predicted_actions"),
    "time": ("timeToConversion", "estimated_time_to_convert_sec", "estimatedTimeToConvertSec"),
    "value": ("expectedOrderValue", "estimated_order_value", "estimatedOrderValue"),
}

_REGEX_PATTERNS = {
    "label": re.compile(
        r"[\"']?(?:primaryPattern|primary_pattern|label)[\"']?\s*:\s*[\"']([^\"']+)[\"']",
        re.IGNORECASE,
    ),
    "confidence": re.compile(r"[\"']?confidence[\"']?\s*:\s*([0-9.]+)", re.IGNORECASE),
    "time": re.compile(
        r"[\"']?(?:timeToConversion|estimated_time_to_convert_sec)[\"']?\s*:\s*([0-9.]+)",
        re.IGNORECASE,
    ),
    "value": re.compile(
        r"[\"']?(?:expectedOrderValue|estimated_order_value)[\"']?\s*:\s*([0-9.]+)",
        re.IGNORECASE,
    ),
}


def _first(data: Dict[str, Any], field: str) -> Any:
    for key in _FIELD_KEYS[field]:
        if data.get(key) is not None:
            return data[key]
    return None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_label(value: Any) -> Optional[IntentLabel]:
    if not isinstance(value, str):
        return None
    key = value.strip().lower().replace(" ", "_").replace("-", "_")
    try:
        return IntentLabel(key)
    except ValueError:
        return None


def _as_strings(value: Any) -> Optional[List[str]]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(v) for v in value if v is not None]
    return None


def _load_json_object(content: str) -> Optional[Dict[str, Any]]:
    """Strict parse, then retry on the outermost {...} span."""
    text = _CODE_FENCE.sub("", content).strip()
    for candidate in (text, text[text.find("{"): text.rfind("}") + 1]):
        if not candidate:
            continue
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


def _extract_fields(content: str) -> Dict[str, Any]:
    found: Dict[str, Any] = {}
    for field, pattern in _REGEX_PATTERNS.items():
        match = pattern.search(content)
        if match:
            found[field] = match.group(1)
    return found


def parse_classification(
    content: str,
    fallback: IntentClassification,
    source: str,
) -> IntentClassification:
    """
    Turn provider text into an IntentClassification.

    Fields that can't be recovered (or hold an unknown label) take the
    rule-based ``fallback`` values. Confidence is clamped to [0, 1].

    Raises:
        InferenceParseError: nothing at all could be recovered
    """
    data = _load_json_object(content)
    if data is not None:
        fields = {name: _first(data, name) for name in _FIELD_KEYS}
    else:
        fields = _extract_fields(content)
    if all(value is None for value in fields.values()):
        raise InferenceParseError(f"{source}: no classification fields in response")

    confidence = _as_float(fields.get("confidence"))
    time_to_convert = _as_float(fields.get("time"))
    order_value = _as_float(fields.get("value"))

    return IntentClassification(
        label=_as_label(fields.get("label")) or fallback.label,
        confidence=clamp(confidence) if confidence is not None else fallback.confidence,
        indicators=_as_strings(fields.get("indicators")) or list(fallback.indicators),
        predicted_actions=(
            _as_strings(fields.get("predicted_actions")) or list(fallback.predicted_actions)
        ),
        estimated_time_to_convert_sec=(
            max(0.0, time_to_convert) if time_to_convert is not None
            else fallback.estimated_time_to_convert_sec
        ),
        estimated_order_value=(
            max(0.0, order_value) if order_value is not None
            else fallback.estimated_order_value
        ),
        source=source,
    )


# =============================================================================
# Providers
# =============================================================================

class InferenceProvider:
    """
    One remote text-generation endpoint.

    Subclasses implement ``complete``; it raises InferenceProviderError on
    any transport, status or empty-content failure.
    """

    name: str = "provider"

    def complete(self, prompt: str) -> str:
        raise NotImplementedError

    def classify(
        self, profile: BehaviorProfile, fallback: IntentClassification
    ) -> IntentClassification:
        content = self.complete(build_prompt(profile))
        return parse_classification(content, fallback, source=self.name)


class OpenAICompatibleProvider(InferenceProvider):
    """Chat-completions provider (OpenAI, Groq, any compatible base URL)."""

    def __init__(
        self,
        name: str,
        api_key: str,
        base_url: str,
        model: str,
        max_tokens: int = 500,
        temperature: float = 0.3,
        timeout: float = 5.0,
        client: Optional[OpenAI] = None,
    ):
        self.name = name
        self._api_key = api_key
        self._base_url = base_url
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._timeout = timeout
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def client(self) -> OpenAI:
        """Lazy-load the OpenAI client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = OpenAI(
                        api_key=self._api_key,
                        base_url=self._base_url,
                        timeout=self._timeout,
                        max_retries=0,
                    )
        return self._client

    def complete(self, prompt: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except OpenAIError as e:
            raise InferenceProviderError(self.name, str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise InferenceProviderError(self.name, "empty response content")
        return content


class AnthropicProvider(InferenceProvider):
    """Anthropic Messages API over plain HTTP."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        version: str = "2023-06-01",
        max_tokens: int = 500,
        timeout: float = 5.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._version = version
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._http = http_client

    def complete(self, prompt: str) -> str:
        client = self._http or httpx.Client(timeout=self._timeout)
        try:
            response = client.post(
                f"{self._base_url}/messages",
                headers={
                    "x-api-key": self._api_key,
                    "anthropic-version": self._version,
                    "content-type": "application/json",
                },
                json={
                    "model": self._model,
                    "max_tokens": self._max_tokens,
                    "messages": [{"role": "user", "content": prompt}],
                },
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise InferenceProviderError(self.name, str(e)) from e
        finally:
            if self._http is None:
                client.close()

        if not response.is_success:
            raise InferenceProviderError(
                self.name, f"status {response.status_code}", status_code=response.status_code
            )

        try:
            blocks = response.json().get("content") or []
        except (ValueError, AttributeError) as e:
            raise InferenceProviderError(self.name, "invalid response body") from e

        text = blocks[0].get("text") if blocks and isinstance(blocks[0], dict) else None
        if not text:
            raise InferenceProviderError(self.name, "empty response content")
        return text


def providers_from_settings(settings: Settings) -> List[InferenceProvider]:
    """Configured providers in priority order; unconfigured ones are skipped."""
    providers: List[InferenceProvider] = []
    common = dict(
        max_tokens=settings.ai_max_tokens,
        temperature=settings.ai_temperature,
        timeout=settings.inference_timeout_seconds,
    )
    if settings.ai_api_key:
        providers.append(OpenAICompatibleProvider(
            name="groq",
            api_key=settings.ai_api_key,
            base_url=settings.ai_base_url,
            model=settings.ai_model,
            **common,
        ))
    if settings.openai_api_key:
        providers.append(OpenAICompatibleProvider(
            name="openai",
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.openai_model,
            **common,
        ))
    if settings.anthropic_api_key:
        providers.append(AnthropicProvider(
            api_key=settings.anthropic_api_key,
            base_url=settings.anthropic_base_url,
            model=settings.anthropic_model,
            version=settings.anthropic_version,
            max_tokens=settings.ai_max_tokens,
            timeout=settings.inference_timeout_seconds,
        ))
    return providers


# =============================================================================
# Chain
# =============================================================================

class InferenceChain:
    """
    Sequential try/fallback over providers sharing ``classify(profile)``.

    Usage:
        chain = InferenceChain.from_settings()
        classification = chain.classify(profile)  # never raises
    """

    def __init__(
        self,
        providers: Sequence[InferenceProvider] = (),
        classifier: Optional[BehaviorClassifier] = None,
        enabled: bool = True,
    ):
        self.providers = list(providers)
        self.classifier = classifier or BehaviorClassifier()
        self.enabled = enabled

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "InferenceChain":
        settings = settings or get_settings()
        return cls(
            providers=providers_from_settings(settings),
            enabled=settings.ai_behavior_analysis_enabled,
        )

    @property
    def active(self) -> bool:
        return self.enabled and bool(self.providers)

    def classify(self, profile: BehaviorProfile) -> IntentClassification:
        """
        Classify with the first provider that succeeds.

        Returns the rule-based classification unchanged when inference is
        disabled, nothing is configured, or every provider fails.
        """
        fallback = self.classifier.classify(profile)
        if not self.active:
            logger.debug("Inference disabled or unconfigured, using rules")
            return fallback

        for provider in self.providers:
            t_start = time.time()
            try:
                result = provider.classify(profile, fallback)
            except Exception as e:
                latency_ms = int((time.time() - t_start) * 1000)
                logger.warning(
                    "Inference provider failed, trying next",
                    provider=provider.name,
                    error=str(e),
                    error_type=type(e).__name__,
                    latency_ms=latency_ms,
                )
                continue

            latency_ms = int((time.time() - t_start) * 1000)
            logger.info(
                "Inference provider classified behavior",
                provider=provider.name,
                label=result.label.value,
                confidence=result.confidence,
                latency_ms=latency_ms,
            )
            return result

        logger.warning(
            "All inference providers failed, using rules",
            providers=[p.name for p in self.providers],
            label=fallback.label.value,
        )
        return fallback
