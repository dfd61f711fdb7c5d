from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from agent_backup.core.backup.api import BackupManager
from agent_backup.core.config import ImportOptions, load_settings, resolve_password
from agent_backup.core.errors import BackupError
from agent_backup.core.logger import setup_logging


def _split_paths(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [p.strip() for p in value.split(",") if p.strip()]


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="agent-backup", description="Portable identity and memory backup for autonomous agents")
    ap.add_argument("--config", default=None, help="Settings file (defaults to ./agent_backup.json when present).")
    ap.add_argument("--log-dir", default=None, help="Also write a rotating log file here.")
    ap.add_argument("--verbose", action="store_true", help="Debug logging.")
    sub = ap.add_subparsers(dest="command")

    ex = sub.add_parser("export", help="Create a backup")
    ex.add_argument("--name", default=None, help="Agent name (required)")
    ex.add_argument("--email", default=None, help="Agent email")
    ex.add_argument("--credentials", default=None, help="Comma-separated credential files")
    ex.add_argument("--memory", default=None, help="Comma-separated memory files")
    ex.add_argument("--output", default=None, help="Output backup file (default: backup.json)")
    ex.add_argument("--workdir", default=".", help="Directory the file lists are relative to")
    ex.add_argument("--encrypt", action="store_true", help="Encrypt backup with password")
    ex.add_argument("--password", default=None, help="Encryption password (or use AGENT_BACKUP_PASSWORD env)")

    im = sub.add_parser("import", help="Restore from backup")
    im.add_argument("file", nargs="?", default=None)
    im.add_argument("--target", default=".", help="Target directory (default: current)")
    im.add_argument("--password", default=None, help="Decryption password")
    im.add_argument("--overwrite", action="store_true", help="Overwrite existing files")

    ve = sub.add_parser("verify", help="Verify backup integrity")
    ve.add_argument("file", nargs="?", default=None)
    ve.add_argument("--password", default=None, help="Also check decryption with this password")
    return ap


def cmd_export(mgr: BackupManager, args: argparse.Namespace) -> int:
    if not args.name:
        print("Error: --name is required", file=sys.stderr)
        return 1
    password = resolve_password(args.password, env_var=mgr.settings.password_env)
    if args.encrypt and not password:
        print(f"Error: --encrypt requires --password or {mgr.settings.password_env} env", file=sys.stderr)
        return 1
    output = args.output or mgr.settings.default_output

    print(f"Exporting backup for {args.name}...")
    archive = mgr.create_backup(
        name=args.name,
        email=args.email,
        credentials_paths=_split_paths(args.credentials),
        memory_paths=_split_paths(args.memory),
        options=mgr.export_options(workdir=args.workdir, encrypt=bool(args.encrypt), password=password),
        output=output,
    )
    print(f"Backup created: {output}")
    print(f"Fingerprint: {mgr.fingerprint(archive)}")
    print(f"Encrypted: {str(archive.is_encrypted).lower()}")
    if not archive.is_encrypted:
        print(f"Files: {archive.file_count()}")
    return 0


def cmd_import(mgr: BackupManager, args: argparse.Namespace) -> int:
    if not args.file:
        print("Error: backup file required", file=sys.stderr)
        return 1
    password = resolve_password(args.password, env_var=mgr.settings.password_env)
    print(f"Importing backup from {args.file}...")
    result = mgr.restore_backup(args.file, options=ImportOptions(target_dir=args.target, overwrite=bool(args.overwrite), password=password))
    print("Backup restored")
    print(f"Agent: {result.agent.name} ({result.agent.email or 'no email'})")
    print(f"Restored: {result.restored.credentials} credentials, {result.restored.memory} memory files")
    if result.skipped:
        print(f"Skipped (already present): {', '.join(result.skipped)}")
    if result.failed:
        print(f"Failed: {', '.join(result.failed)}")
    return 0


def cmd_verify(mgr: BackupManager, args: argparse.Namespace) -> int:
    if not args.file:
        print("Error: backup file required", file=sys.stderr)
        return 1
    password = resolve_password(args.password, env_var=mgr.settings.password_env)
    res = mgr.verify_backup(args.file, password=password)
    print(f"Backup: {args.file}")
    print(f"Version: {res.version}")
    if res.agent_name is not None:
        print(f"Agent: {res.agent_name}")
        print(f"Exported: {res.exported}")
        print(f"Encrypted: {str(res.encrypted).lower()}")
        print(f"Fingerprint: {res.fingerprint}")
    for w in res.warnings:
        print(f"Warning: {w}")
    if not res.ok:
        for e in res.errors:
            print(f"Error: {e}", file=sys.stderr)
        print("Backup is NOT valid")
        return 1
    print("Backup is valid" + (" (decryption checked)" if res.decrypted else ""))
    return 0


COMMANDS = {"export": cmd_export, "import": cmd_import, "verify": cmd_verify}


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    if not args.command:
        ap.print_help()
        return 0
    try:
        settings = load_settings(args.config)
        logger = setup_logging(args.log_dir or settings.log_dir, level=logging.DEBUG if args.verbose else logging.INFO)
        mgr = BackupManager(settings=settings, logger=logger)
        return COMMANDS[args.command](mgr, args)
    except BackupError as e:
        print(f"{args.command.capitalize()} failed: {e.user_message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"{args.command.capitalize()} failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
