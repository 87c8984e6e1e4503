"""CLI commands run against the application's own database."""

from click.testing import CliRunner

from sistahology import crud
from sistahology.auth import get_password_hash
from sistahology.cli import main, service_session


def invoke(*args):
    return CliRunner().invoke(main, list(args))


def test_init_db_and_seed():
    assert invoke("init-db").exit_code == 0

    result = invoke("seed")
    assert result.exit_code == 0, result.output
    assert "site_sections" in result.output

    again = invoke("seed")
    assert "pages: 0 inserted" in again.output


def test_grant_and_revoke_admin():
    invoke("init-db")
    with service_session() as db:
        profile_id = crud.create_account(db, "cli-admin@example.com", get_password_hash("secret123")).id

    granted = invoke("grant-admin", "cli-admin@example.com")
    assert granted.exit_code == 0, granted.output
    assert "is now an admin" in granted.output
    with service_session() as db:
        assert crud.get_profile(db, profile_id).is_admin is True

    revoked = invoke("revoke-admin", str(profile_id))
    assert revoked.exit_code == 0, revoked.output
    with service_session() as db:
        assert crud.get_profile(db, profile_id).is_admin is False


def test_grant_admin_unknown_account():
    invoke("init-db")
    result = invoke("grant-admin", "ghost@example.com")
    assert result.exit_code == 1
    assert "No account for ghost@example.com" in result.output


def test_issue_and_cleanup_tokens():
    invoke("init-db")
    issued = invoke("issue-token", "--email", "invitee@example.com", "--days", "2")
    assert issued.exit_code == 0, issued.output
    assert "/admin/register?token=" in issued.output

    cleaned = invoke("cleanup-tokens")
    assert cleaned.exit_code == 0
    assert "Deleted 0 expired tokens." in cleaned.output


def test_purge_trash_dry_run():
    invoke("init-db")
    result = invoke("purge-trash", "--days", "30", "--dry-run")
    assert result.exit_code == 0
    assert "would be purged" in result.output


def test_issue_token_rejects_non_positive_lifetime():
    invoke("init-db")
    for days in ("0", "-1"):
        result = invoke("issue-token", "--days", days)
        assert result.exit_code == 2
        assert "--days" in result.output
