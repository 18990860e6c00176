"""
CareerMatch Web Application
A Flask-based HTTP surface for the matching core.
"""

import functools
import logging

from flask import Flask, g, jsonify, request
from flask_socketio import SocketIO

from .auth import bearer_token
from .errors import (
    AuthenticationFailed,
    EmbeddingGenerationFailed,
    NoActiveProfile,
    ProfileEmbeddingMissing,
    ProfileNotFound,
)
from .services import Services
from .similarity import similarity_to_score

logger = logging.getLogger(__name__)


def create_app(services: Services) -> Flask:
    """Build the Flask app around already-constructed services."""
    app = Flask(__name__)

    # SocketIO pushes scoring progress to connected clients
    socketio = SocketIO(app, cors_allowed_origins="*")

    def require_user(view):
        @functools.wraps(view)
        def wrapper(*args, **kwargs):
            try:
                token = bearer_token(request.headers.get('Authorization'))
            except AuthenticationFailed as e:
                return jsonify({'error': str(e)}), 401

            try:
                g.user_id = services.verifier.verify(token)
            except AuthenticationFailed as e:
                return jsonify({'error': str(e)}), 403
            except RuntimeError as e:
                logger.error("Token verification unavailable: %s", e)
                return jsonify({'error': 'Server misconfiguration'}), 500

            return view(*args, **kwargs)
        return wrapper

    @app.route('/api/jobs/matched')
    @require_user
    def matched_jobs():
        """Jobs ranked by cached score for the caller's active profile"""
        jobs = services.queries.get_matched_jobs_for_user(g.user_id)
        return jsonify({
            'success': True,
            'jobs': [job.to_dict() for job in jobs],
            'count': len(jobs)
        })

    @app.route('/api/jobs/refresh-scores', methods=['POST'])
    @require_user
    def refresh_scores():
        """Ensure the active profile has an embedding, then rescore it"""
        user_id = g.user_id
        socketio.emit('progress', {'type': 'info', 'message': 'Refreshing match scores...'})

        try:
            report = services.engine.refresh_for_user(user_id)
        except NoActiveProfile:
            return jsonify({'success': False, 'error': 'No active profile found', 'scoresComputed': 0}), 404
        except EmbeddingGenerationFailed as e:
            logger.warning("Refresh for user %s could not embed profile: %s", user_id, e)
            return jsonify({'success': False, 'error': str(e), 'scoresComputed': 0}), 422
        except (ProfileEmbeddingMissing, ProfileNotFound) as e:
            return jsonify({'success': False, 'error': str(e), 'scoresComputed': 0}), 409

        result = {
            'success': True,
            'message': f'Computed {report.written} match scores',
            'scoresComputed': report.written,
            'skippedNoEmbedding': report.skipped_missing,
            'failed': report.failed,
            'timedOut': report.timed_out
        }
        socketio.emit('scores_refreshed', result)
        return jsonify(result)

    @app.route('/api/jobs')
    def list_jobs():
        """Recent jobs without user context; every score is 0"""
        jobs = services.queries.list_jobs()
        return jsonify({
            'success': True,
            'jobs': [job.to_dict() for job in jobs],
            'count': len(jobs)
        })

    @app.route('/api/jobs/<int:job_id>/score')
    @require_user
    def job_score(job_id):
        """Cached score of one job for the caller"""
        score, message = services.queries.get_job_score(g.user_id, job_id)
        body = {'success': True, 'similarity': score, 'match_score': 0}
        if message:
            body['message'] = message
        else:
            body['match_score'] = similarity_to_score(score)
        return jsonify(body)

    app.extensions['careermatch'] = services
    return app
