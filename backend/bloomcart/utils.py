# utils.py - Helpers shared by the normalizer and the API layer
import logging

logger = logging.getLogger('utils')

# Scraped "product details" tables often pick up review widgets and rating
# badges that sit next to them on the page.
NOISE_MARKERS = ["customer review", "ratings", "out of 5 stars", "report abuse", "helpful?", "best sellers rank"]

# Real-world equivalents used to give absolute metrics some context.
DRIVING_KM_PER_KG_CO2E = 4.0
SHOWERS_PER_LITER = 1 / 60
PHONE_CHARGES_PER_KWH = 33


def clean_details(details) -> dict:
    """Drop review/rating noise from a scraped detail map and stringify its values."""
    if not isinstance(details, dict):
        if details:
            logger.warning(f"Ignoring non-dict product details of type {type(details).__name__}")
        return {}

    cleaned = {}
    for key, value in details.items():
        if value is None:
            continue
        key_text = str(key).strip()
        if any(marker in key_text.lower() for marker in NOISE_MARKERS):
            logger.debug(f"Removed key from details: {key_text}")
            continue
        value_text = str(value)
        lower_value = value_text.lower()
        for marker in NOISE_MARKERS:
            idx = lower_value.find(marker)
            if idx != -1:
                logger.debug(f"Truncated value for key {key_text} at '{marker}'")
                value_text = value_text[:idx]
                lower_value = lower_value[:idx]
        value_text = value_text.strip()
        if value_text:
            cleaned[key_text] = value_text
    return cleaned


def describe_equivalent(metric: str, value: float) -> str:
    """Human-readable real-world equivalent for a breakdown metric."""
    if metric == 'carbon':
        return f"Equivalent to driving {value * DRIVING_KM_PER_KG_CO2E:.0f} km"
    if metric == 'water':
        showers = round(value * SHOWERS_PER_LITER)
        if showers <= 1:
            return "Less than 1 shower"
        return f"Equivalent to {showers} showers"
    if metric == 'energy':
        return f"Equivalent to {round(value * PHONE_CHARGES_PER_KWH)} phone charges"
    if metric == 'recyclability':
        if value >= 80:
            return "Highly recyclable materials"
        if value >= 50:
            return "Partially recyclable"
        return "Difficult to recycle"
    return ""
