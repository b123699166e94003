"""
开发模式：监控源码与配置变更，自动重启后端服务。
用法: python scripts/dev_server.py [port]
"""

import os
import signal
import subprocess
import sys
import time

from watchdog.events import PatternMatchingEventHandler
from watchdog.observers import Observer

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# 源码与配置目录（递归）；data/ 下的 TinyDB 文件会频繁写入，不监控
WATCH_DIRS = ["asset_viewer", "config"]
WATCH_PATTERNS = ["*.py", "*.yaml", "*.yml"]

# 重启冷却时间（秒）
COOLDOWN = 1.5


class Backend:
    """后端子进程（uvicorn via main.py）。"""

    def __init__(self, port: int):
        self.port = port
        self.process: subprocess.Popen | None = None

    def start(self):
        env = os.environ.copy()
        env["PYTHONPATH"] = PROJECT_ROOT
        env.setdefault("ASSET_VIEWER_ROOT", PROJECT_ROOT)
        self.process = subprocess.Popen([sys.executable, "main.py", str(self.port)], cwd=PROJECT_ROOT, env=env)
        print(f"✅ 后端已启动 (PID: {self.process.pid}, port={self.port})")

    def stop(self):
        if self.process is None or self.process.poll() is not None:
            return
        self.process.send_signal(signal.SIGTERM)
        try:
            self.process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            self.process.kill()
            self.process.wait()

    def restart(self):
        self.stop()
        self.start()


class RestartOnChange(PatternMatchingEventHandler):
    def __init__(self, backend: Backend):
        super().__init__(patterns=WATCH_PATTERNS, ignore_patterns=["*/__pycache__/*"], ignore_directories=True)
        self.backend = backend
        self._last = 0.0

    def on_any_event(self, event):
        if event.event_type not in ("modified", "created", "moved", "deleted"):
            return
        now = time.time()
        if now - self._last < COOLDOWN:
            return
        self._last = now
        print(f"\n🔄 检测到变更: {os.path.relpath(event.src_path, PROJECT_ROOT)}")
        self.backend.restart()


def main():
    port = int(sys.argv[1]) if len(sys.argv) > 1 else 8400

    backend = Backend(port)
    backend.start()

    observer = Observer()
    handler = RestartOnChange(backend)
    for name in WATCH_DIRS:
        path = os.path.join(PROJECT_ROOT, name)
        if os.path.isdir(path):
            observer.schedule(handler, path, recursive=True)
    observer.schedule(handler, PROJECT_ROOT, recursive=False)
    observer.start()
    print("🔥 开发模式已启动，按 Ctrl+C 退出")

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        observer.stop()
        backend.stop()
    observer.join()


if __name__ == "__main__":
    main()
