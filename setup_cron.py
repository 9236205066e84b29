#!/usr/bin/env python3
"""
Install cron entries for every schedule in config/settings.yaml.
A CRON_TZ line pins the schedules to the configured timezone.
Run once: python setup_cron.py
"""
from __future__ import annotations

import subprocess
from pathlib import Path

from autoapply.config import load_settings

ROOT = Path(__file__).resolve().parent
venv_python = ROOT / ".venv" / "bin" / "python"
MARKER = "# autoapply"


def build_entries(schedules: list[str], timezone: str, python: Path = venv_python) -> list[str]:
    command = f"cd {ROOT} && {python} -m autoapply.run_daily"
    lines = [MARKER, f"CRON_TZ={timezone}"]
    lines.extend(f"{expr} {command}" for expr in schedules)
    return lines


def merge_crontab(existing: str, entries: list[str]) -> str:
    """Replace any previously installed block with *entries*."""
    kept: list[str] = []
    skipping = False
    for line in existing.splitlines():
        if line.strip() == MARKER:
            skipping = True
            continue
        if skipping and (line.startswith("CRON_TZ=") or "autoapply.run_daily" in line):
            continue
        skipping = False
        kept.append(line)
    return "\n".join([*kept, *entries]).strip() + "\n"


def main():
    if not venv_python.exists():
        print("Error: .venv not found. Run: python -m venv .venv && pip install -e .")
        return 1
    settings = load_settings()
    entries = build_entries(settings.schedules, settings.timezone)
    try:
        out = subprocess.run(
            ["crontab", "-l"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        existing = (out.stdout or "") if out.returncode == 0 else ""
        new_crontab = merge_crontab(existing, entries)
        if new_crontab.strip() == existing.strip():
            print("Cron entries already present. No change.")
            return 0
        proc = subprocess.run(
            ["crontab", "-"],
            input=new_crontab,
            capture_output=True,
            text=True,
            timeout=5,
        )
        if proc.returncode != 0:
            _write_crontab_file(new_crontab)
            print("Could not install crontab automatically. Run manually:")
            print(f"  crontab {ROOT / 'crontab.txt'}")
            return 1
        print(f"Cron installed: {len(settings.schedules)} schedule(s) in {settings.timezone}")
        for line in entries[2:]:
            print(f"  Entry: {line}")
        return 0
    except subprocess.TimeoutExpired:
        _write_crontab_file("\n".join(entries) + "\n")
        print("Crontab timed out. To install manually, run:")
        print(f"  crontab {ROOT / 'crontab.txt'}")
        return 1
    except FileNotFoundError:
        print("crontab not found. On Windows use Task Scheduler; on Mac/Linux ensure cron is available.")
        _write_crontab_file("\n".join(entries) + "\n")
        return 1


def _write_crontab_file(content: str) -> None:
    path = ROOT / "crontab.txt"
    path.write_text(content, encoding="utf-8")
    print(f"Wrote {path}")


if __name__ == "__main__":
    raise SystemExit(main())
