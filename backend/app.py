#!/usr/bin/env python3
"""
Backend API for BloomCart sustainability scoring.

This Flask API receives scraped Amazon product data from the BloomCart
browser extension, forwards it to the evaluation pipeline, and keeps each
user's plant state up to date as they buy products.
"""

from flask import Flask, jsonify, request
from flask_cors import CORS
import json
import os
import logging
import threading
from datetime import datetime, timezone

from bloomcart.processor import build_default_pipeline

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger('bloomcart_api')

# Initialize Flask app
app = Flask(__name__)
CORS(app)  # Enable CORS for all routes

_pipeline = None
_pipeline_lock = threading.Lock()


def get_pipeline():
    """Builds the pipeline on first use so importing this module never touches the network."""
    global _pipeline
    with _pipeline_lock:
        if _pipeline is None:
            _pipeline = build_default_pipeline()
        return _pipeline


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


# --- MINIMAL LOGGING FOR EXTENSION REQUESTS ---
@app.before_request
def log_extension_payload():
    if request.path.startswith('/api/') and request.method == 'POST':
        payload = request.get_json(silent=True)
        if payload is not None:
            payload_to_log = json.dumps(payload, separators=(',', ':'), default=str)
        else:
            payload_to_log = request.get_data(as_text=True).strip()
        logger.info(f'EXT_PAYLOAD {request.path} ({request.content_type}): {payload_to_log[:1000]}')


@app.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat()})


@app.route('/api/analyze-product', methods=['POST'])
def analyze_product():
    """Main endpoint for the browser extension: score one scraped product."""
    scraped = _json_body().get('scrapedData')
    if not isinstance(scraped, dict) or not scraped:
        return jsonify({'success': False, 'error': 'Missing required product data'}), 400

    start_time = datetime.now(timezone.utc)
    try:
        result = get_pipeline().analyze(scraped)
    except Exception as e:
        logger.error(f"CRITICAL ERROR in /api/analyze-product: {e}", exc_info=True)
        return jsonify({'success': False, 'error': 'Failed to analyze product', 'details': str(e)}), 500

    processing_time_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
    logger.info(f"Analyzed {result['product_key']} in {processing_time_ms:.0f}ms (cached={result['cached']})")
    return jsonify({'success': True, 'product': result, 'cached': result['cached'],
                    'processing_time_ms': processing_time_ms})


@app.route('/api/analyze-products', methods=['POST'])
def analyze_products():
    """Batch variant; results come back in request order."""
    products = _json_body().get('products')
    if not isinstance(products, list) or not products:
        return jsonify({'success': False, 'error': 'products must be a non-empty list'}), 400

    try:
        evaluations = get_pipeline().evaluate_batch(products)
    except Exception as e:
        logger.error(f"CRITICAL ERROR in /api/analyze-products: {e}", exc_info=True)
        return jsonify({'success': False, 'error': 'Failed to analyze products', 'details': str(e)}), 500

    return jsonify({'success': True, 'products': [evaluation.to_document() for evaluation in evaluations]})


@app.route('/api/product-rating/<product_key>', methods=['GET'])
def get_product_rating(product_key):
    evaluation = get_pipeline().cache.get(product_key.strip().upper())
    if evaluation is None:
        return jsonify({'success': False, 'error': 'Product not found'}), 404
    return jsonify({'success': True, 'product': evaluation.to_document()})


@app.route('/api/product-rating/<product_key>', methods=['DELETE'])
def invalidate_product_rating(product_key):
    removed = get_pipeline().invalidate(product_key)
    return jsonify({'success': True, 'removed': removed})


@app.route('/api/plant-state/<user_id>', methods=['GET'])
def get_plant_state(user_id):
    account = get_pipeline().rewards.get_account(user_id)
    return jsonify({'success': True, 'plantState': account.to_document()})


@app.route('/api/plant-state/update', methods=['POST'])
def update_plant_state():
    """Folds a purchased product's grade into the user's plant."""
    body = _json_body()
    user_id = body.get('userId')
    rating = body.get('rating')
    if not user_id:
        return jsonify({'success': False, 'error': 'userId is required'}), 400
    if not rating:
        return jsonify({'success': False, 'error': 'rating is required'}), 400

    try:
        account = get_pipeline().rewards.apply(str(user_id), str(rating))
    except Exception as e:
        logger.error(f"Plant state update error: {e}", exc_info=True)
        return jsonify({'success': False, 'error': 'Failed to update plant state'}), 500

    return jsonify({'success': True, 'plantState': account.to_document(),
                    'frameChange': account.history[-1].delta})


@app.route('/', defaults={'path': ''}, methods=['GET', 'POST', 'PUT', 'DELETE', 'PATCH', 'OPTIONS'])
@app.route('/<path:path>', methods=['GET', 'POST', 'PUT', 'DELETE', 'PATCH', 'OPTIONS'])
def catch_all(path):
    logger.info(f"Catch-all route hit for path: {path}, method: {request.method}")
    return jsonify({"status": "BloomCart API is running. Use /api/analyze-product for analysis.",
                    "path_requested": path}), 200


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    logger.info(f"BloomCart Flask app starting on host 0.0.0.0, port {port}")
    app.run(host='0.0.0.0', port=port, debug=False, use_reloader=False)
