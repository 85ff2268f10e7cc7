# ==============================================================================
# Normalizer: turns a loosely-structured scraped record into a NormalizedProduct.
#
# normalize() is total. The optional AI extractor is tried first, and every
# field it cannot supply (or any failure at all) is filled in by the
# keyword/regex heuristics below.
# ==============================================================================

import logging
import math
import re

from bloomcart.models import NormalizedProduct
from bloomcart.utils import clean_details

logger = logging.getLogger('normalizer')

DEFAULT_CATEGORY = 'default'
DEFAULT_WEIGHT_KG = 0.5
MAX_DESCRIPTION_LENGTH = 300

UNIT_TO_KG = {
    'kg': 1.0,
    'g': 0.001,
    'lb': 0.453592,
    'oz': 0.0283495,
}

UNIT_ALIASES = {
    'kg': 'kg', 'kgs': 'kg', 'kilo': 'kg', 'kilos': 'kg', 'kilogram': 'kg', 'kilograms': 'kg',
    'g': 'g', 'gr': 'g', 'gram': 'g', 'grams': 'g',
    'lb': 'lb', 'lbs': 'lb', 'pound': 'lb', 'pounds': 'lb',
    'oz': 'oz', 'ounce': 'oz', 'ounces': 'oz',
}

WEIGHT_PATTERN = re.compile(
    r"(\d{1,3}(?:,\d{3})+|\d+(?:\.\d+)?|\.\d+)\s*"
    r"(kilograms?|kilos?|kgs?|grams?|gr|g|pounds?|lbs?|ounces?|oz)\b",
    re.IGNORECASE,
)

# Ordered: the first matching tag wins, so more specific tags come first
# ("Home & Kitchen" is kitchen, not home).
CATEGORY_KEYWORDS = (
    ('electronics', ('electronic', 'computer', 'cell phone', 'headphone', 'camera', 'audio', 'video game', 'laptop')),
    ('clothing', ('clothing', 'apparel', 'fashion', 'shoe', 'jewelry', 'textile')),
    ('furniture', ('furniture',)),
    ('food', ('food', 'grocery', 'gourmet', 'snack', 'beverage')),
    ('books', ('book', 'kindle')),
    ('toys', ('toy', 'game', 'baby')),
    ('beauty', ('beauty', 'personal care', 'cosmetic', 'skin care')),
    ('kitchen', ('kitchen', 'dining', 'cookware')),
    ('sports', ('sport', 'outdoor', 'fitness', 'exercise')),
    ('office', ('office', 'stationery', 'school supplies')),
    ('home', ('home', 'garden', 'household', 'patio', 'bedding')),
)

CATEGORY_TAGS = tuple(tag for tag, _ in CATEGORY_KEYWORDS)

CATEGORY_DEFAULT_WEIGHTS = {
    'electronics': 2.0,
    'clothing': 0.5,
    'furniture': 15.0,
    'food': 1.0,
    'books': 0.8,
    'toys': 1.5,
    'beauty': 0.3,
    'kitchen': 2.0,
    'sports': 1.5,
    'home': 2.5,
    'office': 1.0,
}

# Product-type hints in the title are more specific than the category, so
# they are consulted first.
TITLE_DEFAULT_WEIGHTS = (
    (('earbud', 'headphone', 'earphone', 'phone', 'charger', 'cable', 'electronic'), 0.4),
    (('paper', 'book', 'notebook'), 0.2),
    (('shirt', 't-shirt', 'clothing', 'sock', 'dress'), 0.3),
    (('furniture', 'chair', 'table', 'desk', 'sofa'), 5.0),
    (('appliance', 'microwave', 'refrigerator', 'washer'), 15.0),
)

# Canonical material name -> keywords that indicate it.
MATERIAL_KEYWORDS = (
    ('plastic', ('plastic', 'polyester', 'polypropylene', 'polycarbonate', 'pvc', 'nylon', 'acrylic')),
    ('aluminum', ('aluminum', 'aluminium')),
    ('steel', ('steel', 'stainless')),
    ('metal', ('metal', 'iron', 'copper', 'brass')),
    ('cotton', ('cotton',)),
    ('textile', ('fabric', 'textile', 'wool', 'linen', 'silk')),
    ('wood', ('wood', 'wooden', 'bamboo')),
    ('glass', ('glass',)),
    ('paper', ('paper',)),
    ('cardboard', ('cardboard',)),
    ('ceramic', ('ceramic', 'porcelain')),
    ('rubber', ('rubber',)),
    ('leather', ('leather',)),
)

ORIGIN_KEYS = ('country of origin', 'origin', 'made in', 'ships from')
SHIPPING_KEYS = ('shipping', 'delivery', 'fulfil')
BREADCRUMB_SEPARATORS = re.compile(r"\s*(?:›|»|>|/|\|)\s*")


def _keyword_regex(keywords) -> re.Pattern:
    alternatives = '|'.join(re.escape(keyword) for keyword in keywords)
    return re.compile(rf"\b(?:{alternatives})(?:e?s)?\b", re.IGNORECASE)


_CATEGORY_PATTERNS = tuple((tag, _keyword_regex(words)) for tag, words in CATEGORY_KEYWORDS)
_MATERIAL_PATTERNS = tuple((name, _keyword_regex(words)) for name, words in MATERIAL_KEYWORDS)
_TITLE_WEIGHT_PATTERNS = tuple((_keyword_regex(words), weight) for words, weight in TITLE_DEFAULT_WEIGHTS)


# ==============================================================================
# Heuristic extractors
# ==============================================================================

def to_kg(value, unit) -> float | None:
    """Converts a (value, unit) pair to kilograms; None when it cannot be trusted."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    factor = UNIT_TO_KG.get(UNIT_ALIASES.get(str(unit or 'kg').strip().lower(), ''))
    if factor is None:
        return None
    weight = number * factor
    if not math.isfinite(weight) or weight <= 0:
        return None
    return weight


def parse_weight(text: str) -> float | None:
    """Returns the first positive `number + unit` weight found in the text, in kg."""
    if not text:
        return None
    for match in WEIGHT_PATTERN.finditer(text):
        weight = to_kg(match.group(1).replace(',', ''), match.group(2))
        if weight is not None:
            return weight
    return None


def category_tag(text: str) -> str | None:
    """Maps free category text onto one of the known tags, or None."""
    if not text:
        return None
    for tag, pattern in _CATEGORY_PATTERNS:
        if pattern.search(text):
            return tag
    return None


def extract_category(raw: dict, details: dict) -> str:
    tag = category_tag(str(raw.get('category') or ''))
    if tag:
        return tag

    # Breadcrumb trails, most specific segment first.
    trails = []
    breadcrumbs = raw.get('breadcrumbs')
    if isinstance(breadcrumbs, (list, tuple)):
        trails.append([str(crumb) for crumb in breadcrumbs])
    elif breadcrumbs:
        trails.append(BREADCRUMB_SEPARATORS.split(str(breadcrumbs)))
    for key, value in details.items():
        if 'category' in key.lower() or 'breadcrumb' in key.lower() or '›' in value or ' > ' in value:
            trails.append(BREADCRUMB_SEPARATORS.split(value))

    for trail in trails:
        for segment in reversed(trail):
            tag = category_tag(segment)
            if tag:
                return tag
    return DEFAULT_CATEGORY


def extract_weight(title: str, details: dict, category: str) -> float:
    weight = parse_weight(title)
    if weight is not None:
        return weight

    weight_first = sorted(details.items(), key=lambda item: 'weight' not in item[0].lower())
    for _, value in weight_first:
        weight = parse_weight(value)
        if weight is not None:
            return weight

    for pattern, default_weight in _TITLE_WEIGHT_PATTERNS:
        if pattern.search(title):
            return default_weight

    return CATEGORY_DEFAULT_WEIGHTS.get(category, DEFAULT_WEIGHT_KG)


def extract_materials(*texts: str) -> frozenset:
    blob = ' '.join(text for text in texts if text)
    found = {name for name, pattern in _MATERIAL_PATTERNS if pattern.search(blob)}
    return frozenset(found) if found else frozenset({'mixed'})


def _detail_lookup(details: dict, keys) -> str:
    for key, value in details.items():
        if any(wanted in key.lower() for wanted in keys):
            return value
    return ''


def _short_description(description: str, title: str) -> str:
    text = ' '.join((description or title or '').split())
    if len(text) <= MAX_DESCRIPTION_LENGTH:
        return text
    return text[:MAX_DESCRIPTION_LENGTH].rsplit(' ', 1)[0]


# ==============================================================================
# Public entry point
# ==============================================================================

def normalize(raw, extractor=None) -> NormalizedProduct:
    """
    Builds a NormalizedProduct from a raw scraped record.

    Args:
        raw: The scraped record; any field may be missing.
        extractor: Optional AI collaborator with a `clean_product_data(raw)`
            method returning a validated CleanedProduct.

    Returns:
        A NormalizedProduct whose weight is always finite and > 0.
    """
    if not isinstance(raw, dict):
        logger.warning(f"Raw record is {type(raw).__name__}, not a dict; treating as empty.")
        raw = {}

    details = clean_details(raw.get('details'))
    title = ' '.join(str(raw.get('title') or '').split()) or 'Unknown Product'
    description = str(raw.get('description') or '')
    detail_text = ' '.join(f"{key} {value}" for key, value in details.items())

    category = extract_category(raw, details)
    weight_kg = extract_weight(title, details, category)
    materials = extract_materials(title, description, detail_text)
    short_description = _short_description(description, title)
    origin = str(raw.get('origin') or _detail_lookup(details, ORIGIN_KEYS))
    shipping = str(raw.get('shipping') or _detail_lookup(details, SHIPPING_KEYS))

    if extractor is not None:
        try:
            cleaned = extractor.clean_product_data(raw)
            ai_weight = to_kg(cleaned.weight.value, cleaned.weight.unit) if cleaned.weight else None
            if ai_weight is not None:
                weight_kg = ai_weight
            else:
                logger.warning("AI extractor returned no usable weight; keeping heuristic weight.")
            ai_materials = extract_materials(*cleaned.materials)
            if ai_materials != frozenset({'mixed'}):
                materials = ai_materials
            category = category_tag(cleaned.category) or category
            title = cleaned.cleaned_title.strip() or title
            short_description = _short_description(cleaned.product_description, title)
        except Exception as e:
            logger.warning(f"AI extraction failed, using heuristic normalization: {e}")

    product = NormalizedProduct(
        title=title,
        category=category,
        weight_kg=weight_kg,
        materials=materials,
        description=short_description,
        brand=str(raw.get('brand') or ''),
        origin=origin,
        shipping=shipping,
    )
    logger.info(f"Normalized '{title[:60]}': category={category}, weight={weight_kg:.3f}kg, "
                f"materials={sorted(materials)}")
    return product
