import json
import logging
from typing import Any, Sequence

from backend.exceptions import SummarizationUnavailableError
from backend.schemas.series import AnalyteSeries, ReferenceRange

logger = logging.getLogger(__name__)

SERIES_SYSTEM_PROMPT = "You are a concise clinical data summarizer. Keep answers factual and concise."
CUSTOM_SYSTEM_PROMPT = (
    "You are a health expert providing comprehensive, actionable analysis. Use plain text formatting only. "
    "Write in clear paragraphs and do not repeat exact values or reference ranges already shown to the user."
)
DEFAULT_SERIES_PROMPT = (
    'This is my health data for the analyte(s) "{analyte}"{unit_note}. The data is JSON:\n\n{data}\n\n'
    "Provide your conclusions in 4-6 concise sentences about trends, notable changes, and what stands out."
)


class OpenAICompletionClient:
    """API-key authenticated chat completion through llama-index's OpenAI LLM."""

    def __init__(self, api_key: str | None, model: str, timeout: float = 60.0):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def complete(
        self,
        system_prompt: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
        model: str | None = None,
    ) -> str:
        if not self.api_key:
            raise SummarizationUnavailableError("OPENAI_API_KEY is missing")
        try:
            from llama_index.core.llms import ChatMessage
            from llama_index.llms.openai import OpenAI
        except ImportError as exc:
            raise SummarizationUnavailableError("llama_index is not installed") from exc

        llm = OpenAI(
            model=model or self.model,
            api_key=self.api_key,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self.timeout,
            max_retries=0,
        )
        response = llm.chat(
            [
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=prompt),
            ]
        )
        content = (response.message.content or "").strip()
        if not content:
            raise SummarizationUnavailableError("completion returned no content")
        return content


def _format_bound(value: float | None) -> str:
    return "-" if value is None else f"{value:g}"


def series_payload(series: Sequence[AnalyteSeries], pivoted: bool) -> list[dict[str, Any]]:
    if pivoted:
        return [
            {
                "analyte": item.name,
                "unit": item.unit,
                "points": [{"date": p.date.isoformat(), "value": p.value} for p in item.points],
            }
            for item in series
        ]
    return [{"date": p.date.isoformat(), "value": p.value} for item in series for p in item.points]


def build_series_prompt(
    series: Sequence[AnalyteSeries],
    ref_range: ReferenceRange | None,
    analyte_name: str,
    pivoted: bool,
    template: str | None = None,
    max_payload_chars: int = 12000,
) -> str:
    unit = series[0].unit if series and series[0].unit else ""
    data = json.dumps(series_payload(series, pivoted))[:max_payload_chars]
    prompt = (template or DEFAULT_SERIES_PROMPT).replace("{unit_note}", f" (unit: {unit})" if unit else "")
    prompt = prompt.replace("{data}", data).replace("{analyte}", analyte_name).replace("{unit}", unit)
    if ref_range is not None and not ref_range.is_empty:
        unit_text = f" {unit}" if unit else ""
        prompt += f"\n\nReference range: {_format_bound(ref_range.low)} to {_format_bound(ref_range.high)}{unit_text}."
    return prompt


def is_gut_health(custom_data: dict[str, Any], custom_prompt: str) -> bool:
    return (
        "gastroenterologist" in custom_prompt
        or "intestinal" in custom_prompt
        or custom_data.get("testType") == "gut_health"
    )


class SummarizationGateway:
    """Best-effort prose summary; every failure is logged and turned into None."""

    def __init__(
        self,
        client: OpenAICompletionClient,
        max_tokens: int = 440,
        temperature: float = 0.6,
        max_payload_chars: int = 12000,
        prompt_template: str | None = None,
        custom_model: str | None = None,
        custom_temperature: float = 0.7,
        genetic_max_tokens: int = 400,
        gut_health_max_tokens: int = 350,
    ):
        self.client = client
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_payload_chars = max_payload_chars
        self.prompt_template = prompt_template
        self.custom_model = custom_model
        self.custom_temperature = custom_temperature
        self.genetic_max_tokens = genetic_max_tokens
        self.gut_health_max_tokens = gut_health_max_tokens

    def summarize_series(
        self,
        series: Sequence[AnalyteSeries],
        ref_range: ReferenceRange | None,
        analyte_name: str,
        pivoted: bool,
        prompt_template: str | None = None,
    ) -> str | None:
        try:
            prompt = build_series_prompt(
                series,
                ref_range,
                analyte_name,
                pivoted,
                template=prompt_template or self.prompt_template,
                max_payload_chars=self.max_payload_chars,
            )
            return self.client.complete(SERIES_SYSTEM_PROMPT, prompt, self.max_tokens, self.temperature)
        except SummarizationUnavailableError as exc:
            logger.warning("Summary skipped for %s: %s", analyte_name, exc)
        except Exception as exc:
            logger.warning("Summary request failed for %s: %s", analyte_name, exc)
        return None

    def summarize_custom(self, custom_data: dict[str, Any], custom_prompt: str) -> str | None:
        gut_health = is_gut_health(custom_data, custom_prompt)
        max_tokens = self.gut_health_max_tokens if gut_health else self.genetic_max_tokens
        label = custom_data.get("categoryName") or custom_data.get("testType") or "unknown"
        logger.info("Custom %s analysis for %s, max tokens %d", "gut health" if gut_health else "genetic", label, max_tokens)
        try:
            return self.client.complete(
                f"{CUSTOM_SYSTEM_PROMPT} Keep responses around {max_tokens} tokens.",
                custom_prompt,
                max_tokens,
                self.custom_temperature,
                model=self.custom_model,
            )
        except SummarizationUnavailableError as exc:
            logger.warning("Custom analysis skipped for %s: %s", label, exc)
        except Exception as exc:
            logger.warning("Custom analysis failed for %s: %s", label, exc)
        return None
