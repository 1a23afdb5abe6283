# Overview: Pytest coverage for the flask CLI command groups.

from mesapos.services import auth_service, cash_session_service


def test_create_admin_and_list_users(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["users", "create-admin", "--username", "owner", "--pin", "8642"])
    assert result.exit_code == 0, result.output
    assert "Created admin: owner" in result.output
    assert auth_service.has_admin()

    result = runner.invoke(args=["users", "create-admin", "--username", "other", "--pin", "8642"])
    assert result.exit_code != 0
    assert "admin user already exists" in result.output

    result = runner.invoke(args=["users", "list"])
    assert "owner" in result.output
    assert "admin" in result.output


def test_sessions_list(app, db_session, admin_user):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["sessions", "list"])
    assert "No cash sessions found." in result.output

    session = cash_session_service.open_cash_session(2500, admin_user.id)
    result = runner.invoke(args=["sessions", "list", "--limit", "5"])
    assert result.exit_code == 0, result.output
    assert "OPEN" in result.output
    assert "$25.00" in result.output
    assert str(session.id) in result.output
