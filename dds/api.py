from __future__ import annotations

import logging
from typing import Any, Dict

from flask import Flask, jsonify, request

from dds.controller import DeviceScaler
from dds.errors import ConfigError, InventoryReadError, InventoryWriteError
from dds.state import claim_from_dict, claim_to_dict, node_from_dict

logger = logging.getLogger(__name__)


def create_app(scaler: DeviceScaler) -> Flask:
	app = Flask(__name__)
	app.config['dds_scaler'] = scaler

	@app.errorhandler(InventoryReadError)
	@app.errorhandler(InventoryWriteError)
	def inventory_error(e: Exception) -> Any:
		logger.error(f"Cluster API error: {e}")
		return jsonify({"error": str(e)}), 502

	@app.errorhandler(ConfigError)
	def config_error(e: ConfigError) -> Any:
		logger.error(f"Configuration error: {e}")
		return jsonify({"error": str(e)}), 500

	@app.get("/healthz")
	def healthz() -> Any:
		return jsonify({"status": "ok"})

	@app.post("/reconcile")
	def reconcile() -> Any:
		scaler = app.config['dds_scaler']
		body: Dict[str, Any] = request.get_json(force=True, silent=True) or {}
		node_spec = body.get("node")
		if not node_spec or "name" not in node_spec:
			return jsonify({"error": "missing node spec"}), 400

		try:
			node = node_from_dict(node_spec)
			claims = [claim_from_dict(rc, node_name=node.name) for rc in body.get("resource_claims", [])]
		except (KeyError, TypeError, ValueError) as e:
			return jsonify({"error": f"invalid payload: {e}"}), 400

		result = scaler.reconcile_node(node, claims)
		return jsonify({
			"node": result.node_name,
			"failed": result.failed,
			"rescheduled": result.rescheduled,
			"reserved": result.reserved,
			"resource_claims": [claim_to_dict(rc) for rc in claims],
		})

	@app.post("/nodes/<node_name>/labels")
	def sync_labels(node_name: str) -> Any:
		scaler = app.config['dds_scaler']
		dry_run = request.args.get("dry_run", "false").lower() in ("1", "true", "yes")
		change = scaler.sync_node_labels(node_name, dry_run=dry_run)
		return jsonify({
			"node": node_name,
			"dry_run": dry_run,
			"added": change.added,
			"removed": change.removed,
		})

	return app
