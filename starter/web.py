"""
Read-only management API.

Serves the supervisor's in-memory server list and the merged directory
snapshot; it never changes reconciliation state.
"""
import threading
import logging

from flask import Flask, jsonify

logger = logging.getLogger(__name__)


def create_app(starter) -> Flask:
    """Application factory for the management surface."""
    app = Flask(__name__)
    app.starter = starter

    register_api_routes(app)

    return app


def register_api_routes(app: Flask):
    """Register API routes."""

    @app.route('/api/v1/health', methods=['GET'])
    def api_health():
        """Supervisor and directory health."""
        starter = app.starter
        health = starter.loop.state.health
        now = starter.clock()
        return jsonify({
            'status': 'healthy',
            'version': starter.version,
            'online_since': starter.online_since,
            'loop_state': starter.loop.loop_state.value,
            'ticks': starter.loop.ticks,
            'directory': {
                'last_successful_query': health.last_successful_query,
                'seconds_since_query': round(now - health.last_successful_query, 3),
                'last_auth': health.last_auth,
                'authenticated': starter.client.token_is_fresh(),
            },
        })

    @app.route('/api/v1/servers', methods=['GET'])
    def api_list_servers():
        """List supervised servers."""
        servers = [s.to_dict() for s in app.starter.servers]
        return jsonify({
            'servers': servers,
            'count': len(servers),
            'owner': app.starter.owner,
            'public_ip': app.starter.public_data.public_ip,
        })

    @app.route('/api/v1/servers/<server_id>', methods=['GET'])
    def api_get_server(server_id: str):
        """Get one server and its directory entry."""
        server = app.starter.get_server(server_id)
        if server is None:
            return jsonify({'error': 'Server not found'}), 404

        data = server.to_dict()
        record = app.starter.loop.record_for(server_id)
        data['directory'] = record.to_dict() if record else None
        return jsonify(data)

    @app.route('/api/v1/directory', methods=['GET'])
    def api_directory():
        """The merged directory snapshot and active grace periods."""
        state = app.starter.loop.state
        return jsonify({
            'games': [r.to_dict() for r in state.snapshot],
            'count': len(state.snapshot),
            'grace': dict(state.grace),
        })


def serve_in_background(app: Flask, host: str, port: int) -> threading.Thread:
    """Run the Flask server on a daemon thread."""
    thread = threading.Thread(
        target=app.run,
        kwargs={'host': host, 'port': port, 'debug': False, 'use_reloader': False},
        name='management-web',
        daemon=True,
    )
    thread.start()
    logger.info(f"Management API listening on {host}:{port}")
    return thread
