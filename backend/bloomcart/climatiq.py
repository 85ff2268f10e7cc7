# bloomcart/climatiq.py (Climatiq Autopilot collaborator: suggest, then estimate)

import logging
import math
from dataclasses import dataclass

import requests

from bloomcart.models import ProviderOk, ProviderRejected, ProviderUnavailable

logger = logging.getLogger('climatiq')

SUGGEST_PATH = '/autopilot/v1-preview4/suggest'
ESTIMATE_PATH = '/autopilot/v1-preview4/estimate'


@dataclass(frozen=True)
class ClimatiqSuggestion:
    suggestion_id: str
    name: str = ''


@dataclass(frozen=True)
class ClimatiqEstimate:
    co2e: float
    data_quality: float | str | None
    suggestion_id: str


def _parse_quality(value) -> float | str | None:
    """Numeric ratings become floats; anything else is kept as a categorical marker."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return str(value).strip().lower()


class ClimatiqClient:
    """
    Two-phase Climatiq Autopilot client.

    Both calls return tagged outcomes instead of raising: ProviderOk on
    success, ProviderRejected when the product text is not recognized, and
    ProviderUnavailable for timeouts, HTTP errors and malformed payloads.
    """

    def __init__(self, api_key: str, base_url: str, timeout: float, session: requests.Session | None = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {api_key}',
            'Content-Type': 'application/json',
        })

    def _post(self, path: str, payload: dict):
        response = self.session.post(f"{self.base_url}{path}", json=payload, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def suggest(self, text: str):
        """Step 1: best-match emission factor suggestion for a product description."""
        try:
            data = self._post(SUGGEST_PATH, {'suggest': {'text': text}, 'max_suggestions': 1})
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Climatiq suggest API error: {e}")
            return ProviderUnavailable(f"suggest failed: {e}")

        suggestions = data.get('results', []) if isinstance(data, dict) else data
        if not isinstance(suggestions, list):
            logger.warning(f"Climatiq suggest returned an unexpected payload type: {type(suggestions).__name__}")
            return ProviderUnavailable('malformed suggest payload')
        if not suggestions:
            logger.info(f"Climatiq did not recognize product text: '{text[:80]}'")
            return ProviderRejected('not recognized')

        best = suggestions[0]
        suggestion_id = best.get('suggestion_id') if isinstance(best, dict) else None
        if not suggestion_id:
            return ProviderUnavailable('suggestion without suggestion_id')

        logger.info(f"Climatiq suggestion retrieved: {suggestion_id}")
        return ProviderOk(ClimatiqSuggestion(suggestion_id=str(suggestion_id), name=str(best.get('name', ''))))

    def estimate(self, suggestion_id: str, weight_kg: float):
        """Step 2: kg CO2e for the suggested emission factor at the given weight."""
        payload = {
            'suggestion_id': suggestion_id,
            'parameters': {'weight': weight_kg, 'weight_unit': 'kg'},
        }
        try:
            data = self._post(ESTIMATE_PATH, payload)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Climatiq estimate API error: {e}")
            return ProviderUnavailable(f"estimate failed: {e}")

        if not isinstance(data, dict):
            return ProviderUnavailable('malformed estimate payload')
        try:
            co2e = float(data['co2e'])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Climatiq estimate payload has no usable co2e: {data}")
            return ProviderUnavailable('estimate without co2e')
        if not math.isfinite(co2e) or co2e < 0:
            return ProviderUnavailable(f"estimate co2e out of range: {co2e}")

        quality = _parse_quality(data.get('data_quality_rating', data.get('data_quality')))
        logger.info(f"Climatiq estimate calculated: co2e={co2e}, dataQuality={quality}")
        return ProviderOk(ClimatiqEstimate(co2e=co2e, data_quality=quality, suggestion_id=suggestion_id))
