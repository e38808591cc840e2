import os
import time
import signal
import subprocess
from pathlib import Path

import httpx
from invoke import task, Exit

PROJECT_ROOT = Path(__file__).parent.resolve()
DOWNLOAD_PATH = "/api/download-schedule"


# ---------------------- Server ---------------------- #

@task
def serve(c, port: int = 3000, reload: bool = False):
    """Run the API locally (reads SHAREPOINT_* from the environment or .env)."""
    flag = " --reload" if reload else ""
    c.run(f"cd {PROJECT_ROOT} && python -m schedule_relay.start --port {port}{flag}", pty=True)


@task
def smoke(c, port: int = 3000, out: str = "schedule.xlsx", timeout: float = 120.0):
    """
    Start the server, fetch the schedule once, save it to --out, stop the server.

    Needs real SHAREPOINT_* credentials in the environment or .env.

    Usage:
      invoke smoke --port=3000 --out=/tmp/schedule.xlsx
    """
    base = f"http://127.0.0.1:{port}"
    proc = subprocess.Popen(
        ["python", "-m", "schedule_relay.start", "--port", str(port)],
        cwd=PROJECT_ROOT,
        env=os.environ.copy(),
    )
    try:
        deadline = time.time() + 15
        while time.time() < deadline:
            if proc.poll() is not None:
                raise Exit(f"Server exited early with code {proc.returncode}")
            try:
                if httpx.get(f"{base}/", timeout=1.0).status_code == 200:
                    break
            except httpx.HTTPError:
                time.sleep(0.5)
        else:
            raise Exit("Server did not become healthy in time")

        r = httpx.get(f"{base}{DOWNLOAD_PATH}", timeout=timeout)
        if r.status_code != 200:
            raise Exit(f"Download failed: HTTP {r.status_code}: {r.text}")
        Path(out).write_bytes(r.content)
        print(f"[smoke] Saved {len(r.content)} bytes to {out} ({r.headers.get('content-type')})")
    finally:
        if proc.poll() is None:
            proc.send_signal(signal.SIGINT)
            try:
                proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                proc.kill()


# ---------------------- Pytest convenience tasks ---------------------- #

def _run_pytest(c, target: str = ""):
    """Helper to run pytest against a specific target path."""
    c.run(f"cd {PROJECT_ROOT} && pytest {target}".rstrip())


@task
def test(c):
    """Run the full unit test suite."""
    _run_pytest(c)


@task
def test_unit_graph(c):
    """Run tests for the shared Graph/SharePoint URL helpers."""
    _run_pytest(c, "shared/tests")


@task
def test_unit_pipeline(c):
    """Run tests for site resolution, file location and download."""
    _run_pytest(c, "schedule_relay/tests/test_sites.py schedule_relay/tests/test_locator.py "
                   "schedule_relay/tests/test_retriever.py")


@task
def test_unit_api(c):
    """Run tests for configuration and the HTTP endpoints."""
    _run_pytest(c, "schedule_relay/tests/test_config.py schedule_relay/tests/test_app.py "
                   "schedule_relay/tests/test_start.py")
