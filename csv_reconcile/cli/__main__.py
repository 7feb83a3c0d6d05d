from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from csv_reconcile.config.loader import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    ImportConfig,
    KindConfig,
    load_config,
    resolve_dsn,
)

try:  # pragma: no cover - import guard
    from dotenv import load_dotenv  # type: ignore
except Exception:  # pragma: no cover
    load_dotenv = None  # type: ignore

if TYPE_CHECKING:
    from dotenv import load_dotenv as _load_dotenv_type  # noqa: F401
from csv_reconcile.csvfile.columns import ColumnResolver
from csv_reconcile.csvfile.tokenizer import FatalParseError, read_csv_file
from csv_reconcile.kinds import KINDS, get_kind
from csv_reconcile.logging.error_log import ErrorLogBuffer
from csv_reconcile.logging.init import log_summary, setup_logging
from csv_reconcile.models.import_result import BatchStatsAccumulator
from csv_reconcile.models.row_error import RowError
from csv_reconcile.services.orchestrator import run_import
from csv_reconcile.services.progress import TqdmProgress
from csv_reconcile.services.summary import render_summary_line
from csv_reconcile.store.base import RecordStore, StoreError
from csv_reconcile.store.memory import MemoryRecordStore
from csv_reconcile.store.postgres import PostgresRecordStore, connect

"""CLI entrypoint: ``python -m csv_reconcile.cli <kind> <csv_path>``.

Flow:
- load ``.env`` (overrides the process environment) and the YAML config
- read the CSV once to count rows (fatal input problems stop here)
- connect to PostgreSQL, or fall back to an in-memory store (mock mode)
- run the import with a tqdm bar on TTYs, flush the error log, print SUMMARY
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


@contextmanager
def _record_store(cfg: ImportConfig):  # pragma: no cover (thin wrapper; tested via integration)
    """Yield a PostgresRecordStore for the resolved DSN and close the connection afterwards.

    DSN priority: DATABASE_URL / PGDSN, then PG* variables, then the config
    ``database`` section (``.env`` values are already in the environment).
    """
    dsn = resolve_dsn(cfg.database)
    if dsn is None:
        raise StoreError("no database configured")
    conn = connect(dsn)
    try:
        yield PostgresRecordStore(conn)
    finally:
        try:
            conn.close()
        except Exception:  # pragma: no cover
            pass


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv; values override the existing environment."""
    try:
        if path.exists() and load_dotenv is not None:
            load_dotenv(dotenv_path=path, override=override)  # type: ignore[misc]
    except Exception as e:  # pragma: no cover
        print(f"WARNING: failed to load .env via python-dotenv: {e}")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Bulk CSV import & reconciliation")
    p.add_argument("kind", choices=sorted(KINDS), help="Import kind")
    p.add_argument("csv_path", type=Path, help="CSV file to import")
    p.add_argument("--config", type=Path, default=None, help=f"Config file (default {DEFAULT_CONFIG_PATH})")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print column bindings & first rows then exit")
    p.add_argument(
        "--update-duplicates",
        action="store_true",
        help="Merge rows into existing records instead of skipping them",
    )
    return p.parse_args(argv)


def _load(args: argparse.Namespace, logger: logging.Logger) -> ImportConfig:
    if args.config is not None:
        return load_config(args.config)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    logger.debug("no config file at %s -> defaults", DEFAULT_CONFIG_PATH)
    return ImportConfig()


def _with_update_duplicates(cfg: ImportConfig, kind: str) -> ImportConfig:
    current = cfg.kind(kind) or KindConfig()
    kinds = dict(cfg.kinds)
    kinds[kind] = dataclasses.replace(current, skip_duplicates=False)
    return dataclasses.replace(cfg, kinds=kinds)


def _inspect_data(cfg: ImportConfig, kind_name: str, csv_path: Path) -> int:
    kind = get_kind(kind_name, cfg.kind(kind_name))
    try:
        data = read_csv_file(csv_path)
    except FatalParseError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    resolver = ColumnResolver(data.header, kind.aliases)
    print(f"FILE: {csv_path.name} kind={kind.name}")
    print(f"  header={data.header}")
    print(f"  bindings={resolver.bindings}")
    print(f"  missing_required={resolver.unbound(kind.required)}")
    for i, row in enumerate(data.rows):
        if i >= 3:
            break
        print(f"  row {row.row_number}: {resolver.project(row)}")
    return EXIT_SUCCESS_ALL


def _run(
    cfg: ImportConfig, kind: str, csv_path: Path, store: RecordStore, stats: BatchStatsAccumulator
) -> Any:
    def on_batch(metrics) -> None:
        stats.add_batch_time(metrics.elapsed_seconds)

    with TqdmProgress(f"Importing {kind}", unit="doc" if get_kind(kind).grouped else "row") as progress:
        return run_import(
            kind,
            csv_path,
            store,
            progress=progress,
            config=cfg,
            raise_on_fatal=True,
            metrics_callback=on_batch,
        )


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む ([] はテストからの明示指定)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        setup_logging(logging.DEBUG)
        logger.debug("debug mode enabled")

    try:
        cfg = _load(args, logger)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    if args.update_duplicates:
        cfg = _with_update_duplicates(cfg, args.kind)

    if not args.csv_path.exists():
        logger.error(f"file not found: {args.csv_path}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(cfg, args.kind, args.csv_path)

    error_log = ErrorLogBuffer(Path(cfg.error_log_dir))
    try:
        rows = sum(1 for _ in read_csv_file(args.csv_path).rows)
    except FatalParseError as e:
        logger.error(f"input: {e}")
        error_log.append(RowError.file_level(str(e)))
        error_log.flush()
        return EXIT_FATAL

    logger.info(f"Importing {args.kind} from: {args.csv_path}")

    # DISABLE_DB_CONNECT=1 で DB 接続を完全に無効化 (テスト等)
    disable_db = os.getenv("DISABLE_DB_CONNECT") == "1"
    db_mode = "mock"
    stats = BatchStatsAccumulator()
    try:
        if disable_db:
            logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
            result = _run(cfg, args.kind, args.csv_path, MemoryRecordStore(), stats)
        else:
            try:
                with _record_store(cfg) as store:
                    db_mode = "live"
                    result = _run(cfg, args.kind, args.csv_path, store, stats)
            except StoreError as db_e:
                if db_mode == "live":
                    raise
                # SUPPRESS_DB_WARNING=1 でフォールバック通知を debug に落とす
                if os.getenv("SUPPRESS_DB_WARNING") == "1":
                    logger.debug(f"DB connection failed (suppressed warn) -> fallback to mock mode: {db_e}")
                else:
                    logger.info(f"DB connection failed -> fallback to mock mode: {db_e}")
                result = _run(cfg, args.kind, args.csv_path, MemoryRecordStore(), stats)
    except FatalParseError as e:
        logger.error(f"input: {e}")
        error_log.append(RowError.file_level(str(e)))
        error_log.flush()
        return EXIT_FATAL

    logger.info(f"mode={db_mode} processed={result.processed_count}")
    batches, avg, p95 = stats.get_stats()
    logger.info(f"batches={batches} avg={avg:.3f}s p95={p95:.3f}s")

    error_log.extend(result.errors)
    log_path = error_log.flush()
    if log_path is not None:
        logger.warning(f"{len(result.errors)} errors written to {log_path}")

    summary_line = render_summary_line(args.kind, rows, result)
    # log_summary が "SUMMARY " を付与する
    log_summary(summary_line[len("SUMMARY "):])

    if result.ok:
        return EXIT_SUCCESS_ALL
    return EXIT_PARTIAL_FAILURE


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
