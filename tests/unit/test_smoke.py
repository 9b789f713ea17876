def test_imports_do_not_crash():
    # Every layer must import cleanly on its own.
    from careertrack.analytics.dashboard_service import DashboardService  # noqa: F401
    from careertrack.api.main import app, create_app  # noqa: F401
    from careertrack.storage.sqlite_store import SqliteTrackerStore  # noqa: F401
    from careertrack.tracker.application_service import ApplicationService  # noqa: F401


def test_app_exposes_core_routes():
    from careertrack.api.main import app

    paths = {route.path for route in app.routes}
    for path in (
        "/health",
        "/applications",
        "/applications/{application_id}/transition",
        "/analytics",
        "/insights",
        "/suggestions",
        "/progress/weekly",
    ):
        assert path in paths
