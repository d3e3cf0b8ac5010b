import json

from catalog import app as flask_app


def test_restore_products_from_backup(configure_test_env):
    catalog = flask_app.get_catalog()
    catalog.create({"name": "Drill"})
    catalog.create({"name": "Saw"})
    configure_test_env.write_text("{corrupt", encoding="utf-8")

    runner = flask_app.app.test_cli_runner()
    result = runner.invoke(args=["restore-products"])
    assert result.exit_code == 0
    assert "Restored 1 products" in result.output
    restored = json.loads(configure_test_env.read_text(encoding="utf-8"))
    assert [item["name"] for item in restored] == ["Drill"]


def test_restore_products_without_backup_fails(configure_test_env):
    configure_test_env.parent.mkdir(parents=True, exist_ok=True)
    configure_test_env.write_text("{corrupt", encoding="utf-8")
    runner = flask_app.app.test_cli_runner()
    result = runner.invoke(args=["restore-products"])
    assert result.exit_code != 0
    assert "No readable backup" in result.output


def test_prune_uploads_dry_run(configure_test_env):
    catalog = flask_app.get_catalog()
    stray = catalog.assets.store(b"GIF89a", "stray.gif", "image/gif")

    runner = flask_app.app.test_cli_runner()
    result = runner.invoke(args=["prune-uploads", "--min-age", "0", "--dry-run"])
    assert result.exit_code == 0
    assert "Would remove 1 orphaned file(s)" in result.output
    assert catalog.assets.path_for(stray).exists()

    result = runner.invoke(args=["prune-uploads", "--min-age", "0"])
    assert result.exit_code == 0
    assert not catalog.assets.path_for(stray).exists()
