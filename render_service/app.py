import logging
from typing import Any, Optional, Tuple

from flask import Flask, jsonify, request

from bestiary.config import (
    configure_logging,
    get_bestiary_paths,
    get_render_host,
    get_render_port,
    get_render_token,
    get_storage_base_url,
)
from bestiary.exceptions import InvalidRequestedVariant
from bestiary.index import BestiaryIndex
from bestiary.pipeline import resolve_and_render
from bestiary.storage_api import RemoteLookups, StorageAPI
from bestiary.templates import Lookups, chain_lookups

logger = logging.getLogger(__name__)


def default_lookups() -> Lookups:
    """Local index from BESTIARY_PATHS, then the remote store when configured."""
    local = BestiaryIndex.from_paths(get_bestiary_paths()).lookups()
    base_url = get_storage_base_url()
    if not base_url:
        return local
    return chain_lookups(local, RemoteLookups(StorageAPI(base_url)))


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def create_app(lookups: Optional[Lookups] = None) -> Flask:
    app = Flask(__name__)
    if lookups is None:
        lookups = default_lookups()

    def require_bearer() -> Optional[Tuple[Any, int]]:
        token = get_render_token()
        if not token:
            return None
        if request.headers.get("Authorization") != f"Bearer {token}":
            return jsonify({"error": "unauthorized"}), 401
        return None

    def render_response(record: dict, variant: Optional[str], spell_level: Any, proficiency_bonus: Any) -> Any:
        try:
            spell_level = _optional_int(spell_level)
            proficiency_bonus = _optional_int(proficiency_bonus)
        except (TypeError, ValueError):
            return jsonify({"error": "invalid_number"}), 400
        try:
            document = resolve_and_render(
                record,
                lookups,
                variant_name=variant or None,
                spell_level=spell_level,
                proficiency_bonus=proficiency_bonus,
            )
        except InvalidRequestedVariant as exc:
            logger.info("Rejected variant %r for %r", exc.variant_name, exc.creature_name)
            return jsonify({"error": "invalid_variant", "variant": exc.variant_name}), 404
        return jsonify(document.to_dict())

    @app.route("/health", methods=["GET"])
    def health() -> Any:
        auth = require_bearer()
        if auth:
            return auth
        return jsonify({"status": "ok"})

    @app.route("/render", methods=["POST"])
    def render_record() -> Any:
        auth = require_bearer()
        if auth:
            return auth
        payload = request.get_json(silent=True) or {}
        record = payload.get("record")
        if not isinstance(record, dict) or not record:
            return jsonify({"error": "missing record"}), 400
        return render_response(
            record,
            payload.get("variant"),
            payload.get("spellLevel"),
            payload.get("proficiencyBonus"),
        )

    @app.route("/creatures/<source>/<name>", methods=["GET"])
    def render_creature(source: str, name: str) -> Any:
        auth = require_bearer()
        if auth:
            return auth
        record = lookups.find(name, source)
        if record is None:
            return jsonify({"error": "not_found", "name": name, "source": source}), 404
        return render_response(
            record,
            request.args.get("variant"),
            request.args.get("spellLevel"),
            request.args.get("proficiencyBonus"),
        )

    return app


if __name__ == "__main__":
    configure_logging()
    app = create_app()
    app.run(host=get_render_host(), port=get_render_port(), threaded=True)
