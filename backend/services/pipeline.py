import logging
from typing import Any

from backend.config import Settings
from backend.schemas.series import AnalyteRequest, AnalyteSeries, Longform, Outcome, Pivoted
from backend.services.reference_range import extract_reference_range
from backend.services.schema_inference import date_header_keys, infer_schema
from backend.services.series_assembler import assemble_series, prefer_requested_rows
from backend.services.sources import (
    CardQueryClient,
    FallbackTableAttempt,
    PrimaryCardAttempt,
    Resolution,
    SourceResolver,
    SqlRowStore,
)
from backend.services.summarizer import SummarizationGateway

logger = logging.getLogger(__name__)

NO_DATA_SUMMARY = "No data returned."
DEBUG_ROW_SAMPLE = 20
DEBUG_SOFT_ROW_SAMPLE = 10


def no_numeric_summary(requested: list[str]) -> str:
    return f"No numeric {', '.join(requested)} points found."


class SeriesPipeline:
    """One request's path from analyte names to a normalized series response.

    Collaborators are passed in so tests can swap the card client, the row
    store and the summarizer. Nothing is kept between ``run`` calls.
    """

    def __init__(
        self,
        settings: Settings,
        card_client: CardQueryClient | None,
        store: SqlRowStore | None,
        gateway: SummarizationGateway | None,
    ):
        self.settings = settings
        self.card_client = card_client
        self.store = store
        self.gateway = gateway

    def build_resolver(self, request: AnalyteRequest) -> SourceResolver:
        primary = None
        skip_primary = request.force_supabase or self.settings.force_supabase
        if (
            not skip_primary
            and request.card_id is not None
            and self.card_client is not None
            and self.card_client.configured
        ):
            primary = PrimaryCardAttempt(self.card_client, request.card_id, self.settings.source_row_cap)

        fallbacks = []
        if self.store is not None:
            fallbacks = [
                FallbackTableAttempt(self.store, table_name, self.settings.source_row_cap)
                for table_name in self.settings.fallback_table_list
            ]
        return SourceResolver(primary, fallbacks)

    def run(self, request: AnalyteRequest, debug: bool = False) -> dict[str, Any]:
        debug = debug or request.debug
        if request.custom_data and request.custom_prompt:
            return self._run_custom(request, debug)

        requested = request.requested_names(self.settings.default_analyte)
        logger.info("Series request analytes=%s card=%s debug=%s", requested, request.card_id, debug)
        resolution = self.build_resolver(request).resolve(requested)
        if resolution.outcome == Outcome.NO_DATA_FOUND:
            response: dict[str, Any] = {"summary": NO_DATA_SUMMARY}
            if debug:
                response["debug"] = {
                    "rowsSample": [],
                    "note": "No rows from the card query or fallback tables",
                    "attempts": _attempt_log(resolution),
                }
            return response

        return self._build_series_response(request, requested, resolution, debug)

    def _build_series_response(
        self,
        request: AnalyteRequest,
        requested: list[str],
        resolution: Resolution,
        debug: bool,
    ) -> dict[str, Any]:
        ref_range = extract_reference_range(resolution.rows)
        use_rows = prefer_requested_rows(resolution.rows, requested)
        sample = use_rows[0]
        schema = infer_schema(sample, use_rows)

        series: list[AnalyteSeries] = []
        if not (isinstance(schema, Longform) and schema.value_key is None):
            series = assemble_series(use_rows, schema, requested, strict_dates=self.settings.strict_dates)
        if not series:
            outcome = Outcome.NO_NUMERIC_POINTS
            if isinstance(schema, Longform) and schema.value_key is None:
                outcome = Outcome.NO_NUMERIC_SERIES
            logger.info("No numeric points for %s (%s) from %s", requested, outcome.value, resolution.source)
            response: dict[str, Any] = {"summary": no_numeric_summary(requested)}
            if debug:
                keys = list(sample.keys())
                response["debug"] = {
                    "outcome": outcome.value,
                    "keys": keys,
                    "dateKeys": date_header_keys(keys),
                    "sampleRows": use_rows[:DEBUG_SOFT_ROW_SAMPLE],
                }
            return response

        pivoted = isinstance(schema, Pivoted)
        analyte_name = ", ".join(requested) if pivoted else series[0].name
        ai = None
        if self.gateway is not None:
            ai = self.gateway.summarize_series(series, ref_range, analyte_name, pivoted, prompt_template=request.ai_prompt)

        response = {"data": _series_data(series, pivoted)}
        if ref_range is not None and not ref_range.is_empty:
            response["refRange"] = ref_range.model_dump()
        if ai:
            response["ai"] = ai
        if debug:
            response["debug"] = {
                "usedAI": bool(ai),
                "source": resolution.source,
                "schema": schema.model_dump(),
                "analyte": analyte_name,
                "unit": series[0].unit,
                "rowsSample": use_rows[:DEBUG_ROW_SAMPLE],
            }
        return response

    def _run_custom(self, request: AnalyteRequest, debug: bool) -> dict[str, Any]:
        ai = None
        if self.gateway is not None:
            ai = self.gateway.summarize_custom(request.custom_data, request.custom_prompt)
        response: dict[str, Any] = {"data": request.custom_data}
        if ai:
            response["ai"] = ai
        if debug:
            response["debug"] = {
                "customData": request.custom_data,
                "promptText": request.custom_prompt,
                "aiGenerated": bool(ai),
            }
        return response


def _series_data(series: list[AnalyteSeries], pivoted: bool) -> list[dict[str, Any]]:
    if pivoted:
        return [item.model_dump(mode="json") for item in series]
    return [point.model_dump(mode="json") for point in series[0].points]


def _attempt_log(resolution: Resolution) -> list[dict[str, Any]]:
    return [
        {"source": attempt.source, "status": attempt.status.value, "message": attempt.message}
        for attempt in resolution.attempts
    ]
