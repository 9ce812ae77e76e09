"""
Blueprint registration for the curriculum tracker.

Every blueprint declares full ``/api/...`` paths, so none takes a URL prefix.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.core import bp as core_bp
    from blueprints.lessons import bp as lessons_bp
    from blueprints.resources import bp as resources_bp
    from blueprints.students import bp as students_bp
    from blueprints.tracking import bp as tracking_bp
    from blueprints.schedules import bp as schedules_bp
    from blueprints.teachers import bp as teachers_bp
    from blueprints.portal import bp as portal_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(lessons_bp)
    app.register_blueprint(resources_bp)
    app.register_blueprint(students_bp)
    app.register_blueprint(tracking_bp)
    app.register_blueprint(schedules_bp)
    app.register_blueprint(teachers_bp)
    app.register_blueprint(portal_bp)
