import os
import subprocess
import sys

from conftest import make_pdf_bytes

MAIN_PY = os.path.join(os.path.dirname(__file__), '..', 'main.py')


def run_main(tmp_path, *args, env_overrides=None):
    """main.pyを一時データディレクトリで実行する。"""
    env = os.environ.copy()
    env['QT_QPA_PLATFORM'] = 'offscreen'
    env['CONSTRULOG_DATA_DIR'] = str(tmp_path / "data")
    env['CONSTRULOG_LOG_LEVEL'] = 'WARNING'
    env.update(env_overrides or {})
    return subprocess.run(
        [sys.executable, MAIN_PY, *args],
        capture_output=True,
        text=True,
        timeout=30,
        check=False,
        cwd=str(tmp_path),
        env=env,
    )


def filtered_stderr(stderr):
    # Qtが生成する可能性のある無害なメッセージを除外
    return [
        line for line in stderr.splitlines()
        if "qt." not in line.lower() and "This plugin does not support" not in line
    ]


def test_run_main_no_errors(tmp_path):
    """
    main.pyを実行し、標準エラーに出力がないことを確認するテスト。
    """
    result = run_main(tmp_path, "projects")
    assert result.returncode == 0
    assert not filtered_stderr(result.stderr), f"main.py実行中にエラーが発生しました:\n{result.stderr}"


def test_create_import_and_gallery(tmp_path):
    created = run_main(tmp_path, "create-project", "駅前ビル")
    assert created.returncode == 0, created.stderr
    project_id = created.stdout.strip()

    pdf_path = tmp_path / "floor1.pdf"
    pdf_path.write_bytes(make_pdf_bytes(page_count=2))
    imported = run_main(tmp_path, "import-blueprint", project_id, str(pdf_path))
    assert imported.returncode == 0, imported.stderr
    assert "2ページ" in imported.stdout

    listed = run_main(tmp_path, "projects")
    assert "駅前ビル" in listed.stdout

    gallery = run_main(tmp_path, "gallery", "--project", project_id)
    assert gallery.returncode == 0, gallery.stderr
    assert "合計 0件" in gallery.stdout

    timeline = run_main(tmp_path, "timeline", project_id, "--range", "this_week")
    assert timeline.returncode == 0, timeline.stderr


def test_unknown_project_fails(tmp_path):
    result = run_main(tmp_path, "gallery", "--project", "missing")
    assert result.returncode == 1


def import_sample_blueprint(tmp_path):
    project_id = run_main(tmp_path, "create-project", "倉庫改修").stdout.strip()
    pdf_path = tmp_path / "plan.pdf"
    pdf_path.write_bytes(make_pdf_bytes(page_count=1))
    imported = run_main(tmp_path, "import-blueprint", project_id, str(pdf_path))
    return project_id, imported.stdout.split()[0]


def test_recent_uses_configured_limit(tmp_path):
    project_id, blueprint_id = import_sample_blueprint(tmp_path)
    for title in ("配線", "配管", "足場"):
        added = run_main(tmp_path, "add-log", blueprint_id, "1", "0.5", "0.5", title)
        assert added.returncode == 0, added.stderr

    limited = run_main(tmp_path, "recent", project_id, env_overrides={"CONSTRULOG_RECENT_ENTRIES": "2"})
    assert limited.returncode == 0, limited.stderr
    assert len(limited.stdout.splitlines()) == 2

    explicit = run_main(tmp_path, "recent", project_id, "--limit", "3",
                        env_overrides={"CONSTRULOG_RECENT_ENTRIES": "2"})
    assert len(explicit.stdout.splitlines()) == 3


def test_pins_near_uses_configured_radius(tmp_path):
    _, blueprint_id = import_sample_blueprint(tmp_path)
    run_main(tmp_path, "add-log", blueprint_id, "1", "0.5", "0.5", "中央の柱")

    # ページ中央 (306, 396) から約 5.7 ピクセル離れた位置
    near = run_main(tmp_path, "pins", blueprint_id, "1", "--near", "310", "400")
    assert near.returncode == 0, near.stderr
    assert "中央の柱" in near.stdout

    narrow = run_main(tmp_path, "pins", blueprint_id, "1", "--near", "310", "400",
                      env_overrides={"CONSTRULOG_PIN_HIT_RADIUS": "2"})
    assert narrow.returncode == 0, narrow.stderr
    assert "中央の柱" not in narrow.stdout

    listed = run_main(tmp_path, "pins", blueprint_id, "1")
    assert "(306.0, 396.0)" in listed.stdout


def test_overview_command(tmp_path):
    _, blueprint_id = import_sample_blueprint(tmp_path)
    photo = tmp_path / "photo.png"
    photo.write_bytes(b"\x89PNG")
    run_main(tmp_path, "add-log", blueprint_id, "1", "0.2", "0.2", "配線1", "--category", "electrical")
    run_main(tmp_path, "add-log", blueprint_id, "1", "0.3", "0.2", "配線2", "--category", "electrical",
             "--photo", str(photo))
    run_main(tmp_path, "add-log", blueprint_id, "1", "0.4", "0.2", "床", "--category", "flooring")

    result = run_main(tmp_path, "overview", blueprint_id)
    assert result.returncode == 0, result.stderr
    lines = result.stdout.splitlines()
    assert lines[0].startswith("electrical") and "2件" in lines[0] and "メディアあり" in lines[0]
    assert lines[1].startswith("flooring")
    assert lines[-1] == "合計 3件 / 2カテゴリ / メディア付き 1件"

    finishing = run_main(tmp_path, "overview", blueprint_id, "--preset", "finishing")
    assert [line.split()[0] for line in finishing.stdout.splitlines()[:-1]] == ["flooring"]
