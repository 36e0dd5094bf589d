import logging

import click
from flask import Flask

from payroll_api.extensions import db, migrate, jwt, cors, init_db
from payroll_api.common.errors import register_error_handlers
from payroll_api.common.http import ok
from payroll_api.models import load_all


def create_app(config_object: str | None = None):
    app = Flask(__name__)

    # Defaults from environment, then the optional override object
    app.config.from_object("payroll_api.config.Config")
    if config_object:
        try:
            app.config.from_object(config_object)
        except Exception as e:
            # Just log and continue with defaults
            app.logger.warning("Could not import config object %r: %s", config_object, e)

    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.logger.setLevel(level)

    # CORS (dev)
    cors.init_app(app, resources={r"/api/*": {"origins": "*"}})

    # Extensions
    init_db(app)
    register_error_handlers(app)
    jwt.init_app(app)
    migrate.init_app(app, db)

    # Ensure models are loaded so metadata is complete
    with app.app_context():
        load_all()

    # Blueprints
    from payroll_api.blueprints.auth_v1 import bp as auth_v1_bp
    from payroll_api.blueprints.employment import bp as employment_bp
    from payroll_api.blueprints.leave import bp as leave_bp
    from payroll_api.blueprints.commissions import bp as commissions_bp
    from payroll_api.blueprints.payroll_cycles import bp as payroll_cycles_bp
    from payroll_api.blueprints.exits import bp as exits_bp

    app.register_blueprint(auth_v1_bp)
    app.register_blueprint(employment_bp)
    app.register_blueprint(leave_bp)
    app.register_blueprint(commissions_bp)
    app.register_blueprint(payroll_cycles_bp)
    app.register_blueprint(exits_bp)

    @app.get("/api/health")
    def health():
        return ok({"status": "ok"})

    # ----------------- CLI COMMANDS -----------------

    @app.cli.command("seed-demo")
    @click.option("--password", default="4445", show_default=True, help="Password for the demo users")
    def seed_demo(password: str):
        """Seed a demo salon with an owner, a manager and two staff members."""
        from payroll_api.models.business import Business, Staff
        from payroll_api.models.security import ROLE_CODES, ensure_role, grant_role
        from payroll_api.models.user import User

        for code in ROLE_CODES:
            ensure_role(code)

        b = Business.query.filter_by(code="DEMO").first()
        if not b:
            b = Business(code="DEMO", name="Demo Salon")
            db.session.add(b)
            db.session.flush()

        def ensure_user(email: str, full_name: str, role_code: str, business_id=None):
            user = User.query.filter_by(email=email).first()
            created = False
            if not user:
                user = User(email=email, full_name=full_name, status="active", business_id=business_id)
                user.set_password(password)
                db.session.add(user)
                db.session.flush()
                created = True
            grant_role(user, role_code)
            return user, created

        _, admin_created = ensure_user("admin@demo.local", "Demo Admin", "admin")
        _, owner_created = ensure_user("owner@demo.local", "Demo Owner", "owner", b.id)
        ensure_user("manager@demo.local", "Demo Manager", "manager", b.id)

        for email, name in (("stylist1@demo.local", "Asha Stylist"), ("stylist2@demo.local", "Ravi Stylist")):
            u, _ = ensure_user(email, name, "staff", b.id)
            if not Staff.query.filter_by(user_id=u.id).first():
                db.session.add(Staff(business_id=b.id, user_id=u.id, name=name, email=email))

        db.session.commit()
        click.echo(
            "Seeded/ensured: business DEMO; "
            f"admin@demo.local ({'created' if admin_created else 'existing'}); "
            f"owner@demo.local ({'created' if owner_created else 'existing'}); "
            "manager@demo.local, stylist1/2@demo.local"
        )

    return app
