import logging
import os
from typing import Optional

from flask import Flask, request, jsonify

from azure_devops_wiki_tool import AzureDevOpsWikiTool
from config import load_config
from errors import (
    InvalidParams,
    WikiConcurrencyError,
    WikiError,
    WikiNotFoundError,
    WikiPageNotFoundError,
)
import wiki_tools

logger = logging.getLogger(__name__)


def create_app(wiki_tool: Optional[AzureDevOpsWikiTool] = None) -> Flask:
    app = Flask(__name__)

    if wiki_tool is None:
        wiki_tool = AzureDevOpsWikiTool.from_config(load_config())

    @app.errorhandler(InvalidParams)
    def invalid_params(exc):
        return jsonify({"error": str(exc)}), 400

    @app.errorhandler(WikiError)
    def wiki_error(exc):
        if isinstance(exc, (WikiNotFoundError, WikiPageNotFoundError)):
            status = 404
        elif isinstance(exc, WikiConcurrencyError):
            status = 409
        elif exc.status_code in (400, 401, 403):
            status = exc.status_code
        else:
            status = 502
        logger.warning("Wiki request failed: %s", exc)
        return jsonify({"error": str(exc), "upstreamStatus": exc.status_code}), status

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({"message": "Azure wiki API is running"}), 200

    @app.route("/wikis", methods=["GET"])
    def list_wikis():
        return jsonify(wiki_tools.get_wikis(wiki_tool, request.args.get("project")))

    @app.route("/pages", methods=["GET"])
    def list_pages_route():
        wiki = request.args.get("wiki")
        if not wiki:
            return jsonify({"error": "wiki param required"}), 400
        return jsonify(
            wiki_tools.list_wiki_pages(wiki_tool, wiki, request.args.get("project"))
        )

    @app.route("/page", methods=["GET"])
    def get_page():
        wiki = request.args.get("wiki")
        page_path = request.args.get("path")
        if not wiki or not page_path:
            return jsonify({"error": "wiki and path params required"}), 400
        return jsonify(
            wiki_tools.get_wiki_page(
                wiki_tool, wiki, page_path, request.args.get("project")
            )
        )

    @app.route("/page", methods=["PUT"])
    def upsert_page_route():
        data = request.get_json(silent=True) or {}
        result = wiki_tools.update_wiki_page(
            wiki_tool,
            data.get("wiki"),
            data.get("path"),
            data.get("content"),
            comment=data.get("comment"),
            project_name=data.get("project"),
        )
        return jsonify(result), 201 if result["created"] else 200

    @app.route("/search", methods=["GET", "POST"])
    def search_route():
        # GET kept for backwards compatibility
        if request.method == "POST":
            data = request.get_json(silent=True) or {}
            wiki = data.get("wiki")
            query = data.get("q") or data.get("query") or data.get("searchText")
            top = data.get("top", 20)
        else:
            wiki = request.args.get("wiki")
            query = request.args.get("q")
            top = request.args.get("top", 20, type=int)
        if not wiki or not query:
            return jsonify({"error": "wiki and q param required"}), 400
        return jsonify(wiki_tools.search_wiki_page(wiki_tool, wiki, query, top=top))

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(message)s')
    port = int(os.environ.get("PORT", 8080))
    create_app().run(host="0.0.0.0", port=port)
