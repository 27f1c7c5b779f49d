import time
import shutil
import zipfile
import polars as pl
from pathlib import Path

from tag_analyzer.common.config import settings
from tag_analyzer.common.logger import canonical_logger, elapsed_ms
from tag_analyzer.models import (
    DatasetExtractionError,
    DatasetNotFoundError,
    VideoRecord,
)


# --- 1. DATASET LOCATION ---


def ensure_dataset_extracted(data_dir: str | Path) -> Path:
    """
    Makes sure the data folder is ready to be scanned.
    Extracts `archive.zip` into `unzipped/` the first time it is seen.
    """
    folder = Path(data_dir)
    if not folder.is_dir():
        raise DatasetNotFoundError(f"'{folder}/' folder not found.")

    archive = folder / settings.archive_name
    target = folder / settings.extract_dir_name
    if archive.is_file() and not target.exists():
        # Stage next to the target so a failed extraction leaves nothing behind
        staging = folder / f".{settings.extract_dir_name}.partial"
        shutil.rmtree(staging, ignore_errors=True)
        try:
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(staging)
        except (zipfile.BadZipFile, OSError) as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise DatasetExtractionError(
                f"Failed to unzip dataset '{archive.name}': {e}"
            ) from e
        staging.rename(target)
    return folder


def discover_csv_files(data_dir: str | Path) -> list[Path]:
    return sorted(p for p in Path(data_dir).rglob("*.csv") if p.is_file())


# --- 2. POLARS CSV READER ---


def read_polars(file_path: str | Path) -> pl.LazyFrame:
    """
    Scans a CSV file lazily with every column as String.
    Quoted fields may contain commas; short or long lines are tolerated.
    """
    return pl.scan_csv(
        file_path,
        infer_schema_length=0,
        quote_char='"',
        truncate_ragged_lines=True,
        ignore_errors=True,
        raise_if_empty=False,
        encoding="utf8-lossy",
    )


# Modular Functional Blocks returning LazyFrames
numeric = lambda column: (
    pl.col(column).str.strip_chars().cast(pl.Float64, strict=False)
)

video_extractor = lambda lf: (
    lf.select(
        pl.col(settings.title_column).fill_null("").alias("title"),
        pl.col(settings.tags_column)
        .fill_null("")
        .str.replace_all('"', "", literal=True)
        .str.split(settings.tag_separator)
        .list.eval(pl.element().filter(pl.element() != ""))
        .alias("tags"),
        numeric(settings.views_column).alias("views"),
        numeric(settings.likes_column).alias("likes"),
    ).filter(
        pl.col("views").is_finite()
        & pl.col("likes").is_finite()
        & (pl.col("views") >= 0)
        & (pl.col("likes") >= 0)
    )
)


def load_dataset(file_path: str | Path) -> list[VideoRecord]:
    """Parses one CSV file into VideoRecords, dropping malformed rows."""
    df = read_polars(file_path).pipe(video_extractor).collect()
    return [
        VideoRecord.from_counts(title, tags, views, likes)
        for title, tags, views, likes in df.iter_rows()
    ]


@canonical_logger(event_name="load_datasets_execution")
def load_all_datasets(data_dir: str | Path, ctx=None) -> tuple[VideoRecord, ...]:
    """
    Loads and combines every CSV found under the data folder into one
    immutable Record Store. Unreadable files are skipped and reported.
    """
    if ctx:
        ctx.add_context(data_dir=str(data_dir))

    t0 = time.perf_counter()
    folder = ensure_dataset_extracted(data_dir)
    files = discover_csv_files(folder)
    if ctx:
        ctx.add_step("discover_files", elapsed_ms(t0), files=len(files))

    records = []
    for path in files:
        t0 = time.perf_counter()
        try:
            videos = load_dataset(path)
        except (pl.exceptions.PolarsError, OSError) as e:
            if ctx:
                ctx.register_error("file_skipped", str(e), file=path.name)
            continue
        records.extend(videos)
        if ctx:
            ctx.add_step(f"load:{path.name}", elapsed_ms(t0), rows=len(videos))

    if ctx:
        ctx.add_metric("total_videos", len(records))
        if len(records) < settings.min_expected_videos:
            ctx.register_error(
                "small_dataset",
                f"Combined dataset has only {len(records)} videos.",
                expected=settings.min_expected_videos,
            )

    return tuple(records)
