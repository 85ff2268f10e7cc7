# bloomcart/url_parser.py (ASIN extraction for Amazon product URLs)

import re
import logging

logger = logging.getLogger('url_parser')

# Amazon identifies a product by a 10-character ASIN, found after /dp/,
# /gp/product/ or /gp/aw/d/ depending on the page flavour.
ASIN_PATTERN = re.compile(r"/(?:dp|gp/product|gp/aw/d)/([A-Z0-9]{10})(?:[/?#]|$)", re.IGNORECASE)


def parse_amazon_url(url: str) -> dict | None:
    """
    Parses an Amazon product URL into a stable product key.

    The ASIN is searched for anywhere in the path, so marketing prefixes
    ("/Some-Product-Name/dp/...") and query strings are tolerated.

    Args:
        url: The full Amazon product URL.

    Returns:
        A dictionary with parsed components:
        {
            "source_site": "www.amazon.com",
            "product_key": "B08N5WRWNW",
        }
        Returns None if the URL is not a recognizable Amazon product URL.
    """
    if not url:
        logger.warning("No URL provided to parse_amazon_url.")
        return None

    if '//' not in url:
        logger.warning(f"URL has no scheme, cannot parse: {url}")
        return None

    source_site = url.split('//', 1)[1].split('/')[0].lower()
    if 'amazon.' not in source_site:
        logger.warning(f"URL does not contain a valid Amazon domain: {url}")
        return None

    match = ASIN_PATTERN.search(url)
    if match:
        product_key = match.group(1).upper()
        logger.info(f"Parsed Amazon URL: source_site={source_site}, product_key={product_key}")
        return {
            "source_site": source_site,
            "product_key": product_key,
        }

    logger.warning(f"No ASIN found in URL: {url}")
    return None
