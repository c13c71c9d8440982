"""
AI Agent for BizTrack

CRITICAL BOUNDARIES:

INSIGHT AGENT:
- CAN: Turn already-computed figures into a short advisory paragraph
- CANNOT: Read or change the ledger
- CANNOT: Compute figures itself (every number in the prompt comes from
  the aggregation engine)
- NEVER raises: any failure becomes a fixed fallback message

The LLM is a WRITER, not a CALCULATOR.
Its paragraph is informational only; nothing downstream depends on it.
"""

import json
from typing import Any, Optional

import google.generativeai as genai
import structlog
from google.api_core import exceptions as google_exceptions
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from biztrack.config import get_settings
from biztrack.models.ledger import Ledger
from biztrack.queries.aggregation import (
    category_breakdown,
    net_income,
    total_expenses,
    total_outstanding,
)


EMPTY_RESPONSE_MESSAGE = "Unable to generate insight at this time."
SERVICE_ERROR_MESSAGE = "Error connecting to AI service. Please check your internet connection."

# Transient service conditions worth another attempt
RETRYABLE_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.ResourceExhausted,
    google_exceptions.DeadlineExceeded,
)

logger = structlog.get_logger(__name__)


class InsightAgent:
    """
    Generates a financial-health paragraph for the dashboard.

    RESPONSIBILITIES:
    - Build the prompt from the ledger's headline figures
    - Call Gemini with a bounded retry on transient errors
    - Fall back to a fixed message on any failure
    """

    def __init__(self, model: Optional[Any] = None):
        """
        Args:
            model: Object exposing `generate_content_async(prompt)`.
                   If None, a Gemini model is configured from settings
                   when an API key is present.
        """
        self._settings = get_settings().gemini
        self._currency = get_settings().app.currency_symbol
        self._model = model if model is not None else self._configure_genai()

    @property
    def model_name(self) -> str:
        return self._settings.model_name

    def _configure_genai(self) -> Optional[Any]:
        """Configure Google Generative AI; None when no key is set."""
        if not self._settings.api_key:
            return None
        genai.configure(api_key=self._settings.api_key)
        return genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    def build_prompt(self, ledger: Ledger) -> str:
        """Prompt holding the ledger's headline figures."""
        income = net_income(ledger.payments)
        expenses = total_expenses(ledger.expenses)
        breakdown = {
            item.category: float(item.total)
            for item in category_breakdown(ledger.expenses)
        }
        c = self._currency

        return f"""Act as a financial advisor for a small business.
Here is the current financial summary:
- Total Revenue (after refunds): {c}{income:.2f}
- Total Expenses: {c}{expenses:.2f}
- Net Profit: {c}{income - expenses:.2f}
- Total Outstanding Payments (Due from clients): {c}{total_outstanding(ledger):.2f}

Expense Breakdown by Category:
{json.dumps(breakdown, indent=2, ensure_ascii=False)}

Please provide a concise paragraph (max 100 words) analyzing the financial health.
Highlight one area of strength and one area for potential improvement (especially regarding pending dues if high).
Keep the tone professional and encouraging."""

    @retry(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _generate(self, prompt: str) -> str:
        response = await self._model.generate_content_async(prompt)
        try:
            return (response.text or "").strip()
        except ValueError:
            # Blocked or empty candidates
            return ""

    async def generate_insight(self, ledger: Ledger) -> tuple[str, bool]:
        """
        Generate the insight paragraph.

        Returns:
            (text, used_fallback)
        """
        if self._model is None:
            return SERVICE_ERROR_MESSAGE, True

        try:
            text = await self._generate(self.build_prompt(ledger))
        except Exception as e:
            logger.warning("insight_generation_failed", model=self.model_name, error=str(e))
            return SERVICE_ERROR_MESSAGE, True

        if not text:
            return EMPTY_RESPONSE_MESSAGE, True
        return text, False
