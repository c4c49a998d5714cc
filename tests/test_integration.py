"""Integration tests: run the CLI as a subprocess."""

import json
import os
import signal
import subprocess
import sys
import time

ROOT = os.path.join(os.path.dirname(__file__), "..")


def _env():
    env = os.environ.copy()
    env["PYTHONPATH"] = os.path.abspath(ROOT) + os.pathsep + env.get("PYTHONPATH", "")
    env.pop("LOGSCOUT_CONFIG", None)
    return env


def _run(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "logscout.main", *args],
        capture_output=True,
        text=True,
        env=_env(),
        timeout=30,
    )


def _write_config(tmp_path, body: str) -> str:
    p = tmp_path / "config.yaml"
    p.write_text(body)
    return str(p)


class TestOneShotRun:
    def test_filtered_output_and_summary(self, tmp_path):
        log = tmp_path / "app.log"
        log.write_text("2024 ERROR disk full\n2024 INFO ok\nERROR healthcheck failed\n")
        cfg = _write_config(tmp_path, f"""
follow: false
include: ["ERROR"]
exclude: ["healthcheck"]
sources:
  - name: app
    type: file
    path: {log}
""")
        result = _run(cfg, "--per-source")
        assert result.returncode == 0, result.stderr
        out = result.stdout.splitlines()
        assert out[0] == "[app] 2024 ERROR disk full"
        assert "total:    3" in result.stdout
        assert "included: 1" in result.stdout
        assert "excluded: 2" in result.stdout
        assert "  app: total=3 included=1 excluded=2" in result.stdout

    def test_json_summary(self, tmp_path):
        log = tmp_path / "app.log"
        log.write_text("a\nb\n")
        cfg = _write_config(tmp_path, f"""
sources:
  - name: app
    type: file
    path: {log}
  - name: gone
    type: file
    path: {tmp_path / 'missing.log'}
""")
        result = _run(cfg, "--summary", "json")
        assert result.returncode == 0, result.stderr
        summary = result.stdout[result.stdout.index("{"):]
        data = json.loads(summary)
        assert data["total"] == 2
        assert data["per_source"]["gone"]["total"] == 0
        assert "gone" in result.stderr


class TestErrors:
    def test_invalid_pattern_is_fatal(self, tmp_path):
        cfg = _write_config(tmp_path, """
include: ["(unclosed"]
sources:
  - name: a
    type: file
    path: /tmp/whatever.log
""")
        result = _run(cfg)
        assert result.returncode == 1
        assert "invalid include pattern" in result.stderr

    def test_missing_config(self, tmp_path):
        result = _run(str(tmp_path / "nope.yaml"))
        assert result.returncode == 1
        assert "logscout: error" in result.stderr


class TestInterrupt:
    def test_sigint_prints_summary(self, tmp_path):
        log = tmp_path / "app.log"
        log.write_text("first\n")
        cfg = _write_config(tmp_path, f"""
follow: true
poll_interval: 0.05
sources:
  - name: app
    type: file
    path: {log}
""")
        proc = subprocess.Popen(
            [sys.executable, "-m", "logscout.main", cfg],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=_env(),
        )
        try:
            assert proc.stdout.readline().strip() == "[app] first"
            with open(log, "a") as fh:
                fh.write("second\n")
            assert proc.stdout.readline().strip() == "[app] second"
            time.sleep(0.1)
            proc.send_signal(signal.SIGINT)
            out, err = proc.communicate(timeout=10)
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()
        assert proc.returncode == 0, err
        assert "total:    2" in out


class TestClosedStdout:
    def test_closed_reader_end_exits_without_traceback(self, tmp_path):
        log = tmp_path / "app.log"
        log.write_text("a\nb\n")
        cfg = _write_config(tmp_path, f"""
sources:
  - name: app
    type: file
    path: {log}
""")
        # reader end closed before the child starts, like `logscout cfg | head -0`
        r, w = os.pipe()
        os.close(r)
        try:
            proc = subprocess.Popen(
                [sys.executable, "-m", "logscout.main", cfg],
                stdout=w,
                stderr=subprocess.PIPE,
                text=True,
                env=_env(),
            )
        finally:
            os.close(w)
        _, err = proc.communicate(timeout=30)
        assert proc.returncode == 0, err
        assert "Traceback" not in err
        assert "Exception ignored" not in err
        assert "summary not written" in err
