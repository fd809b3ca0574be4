import logging

from flask import Flask, jsonify, request
from flask_cors import CORS

from config import load_config
from eth import connect, scan
from transfers import NoTransfersError, ScanError

logger = logging.getLogger(__name__)

MAX_LIMIT = 100


def create_app(config=None, w3=None):
    if config is None:
        config = load_config()
    if w3 is None:
        w3 = connect(config)

    app = Flask(__name__)
    # Allow the configured origins on ALL /api/* routes, including OPTIONS
    CORS(app, resources={r"/api/*": {"origins": list(config.cors_origins)}})

    def _redact(err):
        return str(err).replace(config.api_key, "***")

    def _error(err, status):
        return jsonify({"addresses": [], "error": err}), status

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok"}), 200

    @app.route("/api/top-addresses", methods=["GET"])
    def top_addresses():
        """
        Query: limit=<1..100> (default TOP_N)
        Returns {"addresses": [{"address", "count"}...], "from_block", "to_block",
                 "logs", "transfers", "error": null}
        """
        raw = request.args.get("limit")
        try:
            limit = config.top_n if raw is None else int(raw)
        except ValueError:
            return _error(f"limit must be an integer, got {raw!r}", 400)
        if not 1 <= limit <= MAX_LIMIT:
            return _error(f"limit must be between 1 and {MAX_LIMIT}", 400)

        try:
            result = scan(w3)
        except NoTransfersError as e:
            logger.warning(f"No transfers to rank: {e}")
            return _error(str(e), 404)
        except ScanError as e:
            logger.error(f"Error in top_addresses: {_redact(e)}")
            return _error(_redact(e), 502)

        return jsonify({
            "addresses": [m.to_dict() for m in result.metrics[:limit]],
            "from_block": result.block_range.start,
            "to_block": result.block_range.end,
            "logs": result.logs,
            "transfers": result.transfers,
            "error": None,
        })

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_app().run(debug=True)
