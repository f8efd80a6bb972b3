import logging

import click
from flask import Flask, jsonify
from flask_cors import CORS
from flask_restful import Api
from sqlalchemy import text

from config import Config
from extensions import db, bcrypt, jwt, mail, migrate

logger = logging.getLogger(__name__)


def _configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    logging.getLogger().setLevel(level)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    _configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    jwt.init_app(app)
    mail.init_app(app)
    CORS(app)

    # Import models so create_all sees every table
    from courierhub import models  # noqa: F401

    # Register API resources
    from courierhub.routes.auth_routes import SignupResource, SigninResource, MeResource, RefreshResource

    api = Api(app)
    api.add_resource(SignupResource, "/api/auth/signup")
    api.add_resource(SigninResource, "/api/auth/signin")
    api.add_resource(MeResource, "/api/auth/me")
    api.add_resource(RefreshResource, "/api/auth/refresh")

    from courierhub.routes.user_routes import user_bp
    from courierhub.routes.courier_partner_routes import courier_partners_bp
    from courierhub.routes.order_routes import orders_bp
    from courierhub.routes.quote_routes import quotes_bp
    from courierhub.routes.booking_routes import bookings_bp
    from courierhub.routes.tracking_routes import tracking_bp
    from courierhub.routes.payment_routes import payments_bp
    from courierhub.routes.dashboard_routes import dashboard_bp

    for blueprint in (user_bp, courier_partners_bp, orders_bp, quotes_bp, bookings_bp,
                      tracking_bp, payments_bp, dashboard_bp):
        app.register_blueprint(blueprint)

    @app.route('/api/health')
    def health_check():
        """Database connectivity check"""
        try:
            db.session.execute(text('SELECT 1'))
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return jsonify({'status': 'unhealthy', 'database': 'disconnected'}), 500
        return jsonify({'status': 'healthy', 'database': 'connected'}), 200

    _register_jwt_handlers()
    _register_error_handlers(app)
    _register_commands(app)

    return app


def _register_jwt_handlers():
    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({'error': 'Authentication required', 'message': reason}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({'error': 'Invalid token', 'message': reason}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({'error': 'Token has expired'}), 401


def _register_error_handlers(app):
    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({'error': 'Bad request', 'message': str(error)}), 400

    @app.errorhandler(401)
    def unauthorized(error):
        return jsonify({'error': 'Unauthorized', 'message': 'Authentication required'}), 401

    @app.errorhandler(403)
    def forbidden(error):
        return jsonify({
            'error': 'Forbidden',
            'message': 'You do not have permission to access this resource'
        }), 403

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Resource not found', 'message': str(error)}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed', 'message': str(error)}), 405

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()  # Rollback any failed transactions
        message = str(error) if app.config.get('EXPOSE_ERROR_DETAILS') else 'Something went wrong on our end'
        return jsonify({'error': 'Internal server error', 'message': message}), 500


def _register_commands(app):
    @app.cli.command("create-db")
    def create_db():
        """Create database tables"""
        db.create_all()
        click.echo("Database tables created")

    @app.cli.command("drop-db")
    @click.option('--yes', is_flag=True, help='Drop without asking for confirmation')
    def drop_db(yes):
        """Drop all database tables (use with caution!)"""
        if not yes and not click.confirm("Are you sure you want to drop all tables?"):
            click.echo("Operation cancelled")
            return
        db.drop_all()
        click.echo("All database tables dropped")

    @app.cli.command("seed-db")
    def seed_db():
        """Seed users, courier partners and courier API configurations"""
        from seed import seed_data
        seed_data(app)
        click.echo("Database seeded")

    @app.cli.command("sync-tracking")
    @click.option('--courier', 'courier_code', default=None, help='Only refresh orders of this courier')
    def sync_tracking(courier_code):
        """Refresh live tracking for undelivered booked orders"""
        from courierhub.routes.tracking_routes import refresh_courier_orders
        from courierhub.services.courier.manager import get_courier_manager

        manager = get_courier_manager()
        codes = [courier_code] if courier_code else manager.get_available_services()
        total = 0
        for code in codes:
            updated = refresh_courier_orders(manager, code)
            click.echo(f"{code}: refreshed {updated} order(s)")
            total += updated
        click.echo(f"Refreshed tracking for {total} order(s)")
