# bloomcart/analyzer.py (Gemini collaborator: product cleanup + carbon estimate)

import json
import logging

import google.generativeai as genai
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bloomcart.models import ProviderOk, ProviderUnavailable

logger = logging.getLogger('analyzer')


class AnalyzerError(Exception):
    """Raised when Gemini cannot produce a usable product cleanup."""


# --- Structured payloads ---
# Gemini is asked for JSON; whatever comes back is validated against these
# models, and anything that does not validate is treated as no answer.

class Weight(BaseModel):
    value: float = Field(allow_inf_nan=False)
    unit: str = 'kg'


class CleanedProduct(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cleaned_title: str = Field('', alias='cleanedTitle')
    weight: Weight | None = None
    materials: list[str] = Field(default_factory=list)
    category: str = ''
    product_description: str = Field('', alias='productDescription')


class CarbonEstimate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    estimated_co2e: float = Field(alias='estimatedCO2e', gt=0, allow_inf_nan=False)
    confidence: str = 'low'
    reasoning: str = ''


CLEANUP_PROMPT = """
You are a data extraction expert. Clean and structure this Amazon product data:

Raw Data:
Title: {title}
Product Details: {details}
Category: {category}
Description: {description}

Return a JSON object with exactly these keys:
1. cleanedTitle: A concise, clean product title
2. weight: {{ "value": number, "unit": "kg"|"g"|"lb"|"oz" }}
   - If weight not found, estimate based on product type
3. materials: Array of materials (plastic, metal, cotton, etc.)
4. category: Product category (Electronics, Clothing, Home, etc.)
5. productDescription: 1-2 sentence description for carbon analysis
"""

ESTIMATE_PROMPT = """
You are a sustainability expert. Estimate the carbon footprint for this product:

Product: {title}
Weight: {weight_kg:.3f} kg
Materials: {materials}
Category: {category}
Description: {description}

Base your estimate on typical manufacturing, transportation, and material emissions.
Return a JSON object: {{ "estimatedCO2e": number (kg CO2e), "confidence": "high"|"medium"|"low", "reasoning": string }}
"""


class GeminiAnalyzer:
    """Thin wrapper over a Gemini model that always answers in JSON."""

    def __init__(self, api_key: str, model_name: str, timeout: float):
        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(
            model_name=model_name,
            generation_config={'response_mime_type': 'application/json'},
        )
        self.timeout = timeout
        logger.info(f"Gemini analyzer configured with model '{model_name}'.")

    def _generate_json(self, prompt: str) -> str:
        response = self.model.generate_content(prompt, request_options={'timeout': self.timeout})
        return response.text

    def clean_product_data(self, raw: dict) -> CleanedProduct:
        """Asks Gemini to tidy a scraped record. Raises AnalyzerError on any failure."""
        prompt = CLEANUP_PROMPT.format(
            title=raw.get('title') or 'N/A',
            details=json.dumps(raw.get('details') or {}, default=str),
            category=raw.get('category') or 'N/A',
            description=raw.get('description') or 'N/A',
        )
        try:
            cleaned = CleanedProduct.model_validate_json(self._generate_json(prompt))
        except ValidationError as e:
            raise AnalyzerError(f"Gemini cleanup payload failed validation: {e.error_count()} error(s)") from e
        except Exception as e:
            raise AnalyzerError(f"Gemini cleanup call failed: {e}") from e

        logger.info(f"Gemini cleaned product data: title='{cleaned.cleaned_title[:60]}', category='{cleaned.category}'")
        return cleaned

    def estimate_carbon_footprint(self, product):
        """
        Asks Gemini for a kg CO2e estimate of a NormalizedProduct.

        Returns:
            ProviderOk(CarbonEstimate) when the payload validates with a positive
            estimate, otherwise ProviderUnavailable.
        """
        prompt = ESTIMATE_PROMPT.format(
            title=product.title,
            weight_kg=product.weight_kg,
            materials=', '.join(sorted(product.materials)),
            category=product.category,
            description=product.description,
        )
        try:
            text = self._generate_json(prompt)
        except Exception as e:
            logger.warning(f"Gemini carbon estimation call failed: {e}")
            return ProviderUnavailable(f"gemini call failed: {e}")

        try:
            estimate = CarbonEstimate.model_validate_json(text)
        except ValidationError as e:
            logger.warning(f"Gemini carbon estimate was malformed: {e.error_count()} validation error(s)")
            return ProviderUnavailable('malformed gemini estimate')

        logger.info(f"Gemini estimated carbon footprint: co2e={estimate.estimated_co2e}, "
                    f"confidence={estimate.confidence}")
        return ProviderOk(estimate)
