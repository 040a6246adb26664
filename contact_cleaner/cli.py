"""
Command-line interface for the contact cleaner.
"""

import sys
import argparse
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import (
    CASE_MODES,
    DATE_FORMATS,
    INVALID_PHONE_POLICIES,
    PHONE_FORMATS,
    CleaningOptions,
    ColumnOperations,
    PipelineConfig,
    load_config,
)
from .errors import ContactCleanerError
from .logging_setup import log_stats, setup_logger
from .pipeline import (
    STRATEGIES,
    PipelineContext,
    clean_single_file,
    consolidate,
    extract_from_images,
    load_sheets,
    prepare_columns,
    resolve_selection,
)
from .reconciler import select_all_columns, select_common_columns
from .writer import EXPORT_FORMATS, write_rows


def print_banner(logger, mode: str):
    """Print startup banner."""
    logger.info("═" * 40)
    logger.info("  CONTACT CLEANER v1.0")
    logger.info(f"  {mode}")
    logger.info("═" * 40)
    logger.info("")


def print_summary(rows, stats, failures, logger):
    """Print run summary statistics."""
    total = len(rows)
    with_phones = sum(1 for r in rows if str(r.get('Phone', '')).strip())

    logger.info("")
    logger.info("═" * 40)
    logger.info("  CLEANING COMPLETE")
    logger.info("═" * 40)
    if stats:
        log_stats(logger, stats.to_dict(), "Summary Statistics")
    logger.info(f"  With Phones: {with_phones}/{total} ({with_phones/total*100:.1f}%)" if total > 0 else "  With Phones: 0/0 (0.0%)")

    if failures:
        logger.warning(f"  Skipped files: {len(failures)}")
        for name, reason in failures.items():
            logger.warning(f"    {name}: {reason}")


def print_sample_rows(rows, logger, limit=5):
    """Print sample rows."""
    logger.info("")
    logger.info(f"Sample Rows (first {min(limit, len(rows))}):")

    for i, row in enumerate(rows[:limit], 1):
        values = [str(v) for k, v in row.items() if not k.startswith('_') and str(v).strip()]
        logger.info(f"{i}. {' - '.join(values) or 'N/A'}")


def add_cleaning_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by every subcommand."""
    group = parser.add_argument_group('cleaning')

    group.add_argument(
        '--phone-format',
        choices=PHONE_FORMATS,
        default=None,
        help='Phone output format (default: +91, or CONTACT_CLEANER_PHONE_FORMAT)'
    )
    group.add_argument(
        '--date-format',
        choices=DATE_FORMATS,
        default=None,
        help='Date output format (default: YYYY-MM-DD, or CONTACT_CLEANER_DATE_FORMAT)'
    )
    group.add_argument(
        '--strict-mobile',
        action='store_true',
        help='Accept only valid 10-digit mobiles (starting 6-9)'
    )
    group.add_argument(
        '--invalid-phones',
        choices=INVALID_PHONE_POLICIES,
        default='keep',
        help='What to do with invalid mobiles in strict mode (default: keep)'
    )
    group.add_argument(
        '--flag-duplicates',
        action='store_true',
        help='Keep duplicate rows and flag them instead of removing'
    )
    group.add_argument(
        '--keep-last',
        action='store_true',
        help='Keep the last occurrence of a duplicate instead of the first'
    )
    group.add_argument('--standardize-empty', action='store_true', help='Turn NA, N/A, null, - into blanks')
    group.add_argument('--title-case', action='store_true', help='Title-case name columns')
    group.add_argument('--yes-no', action='store_true', help='Normalize yes/no style values')
    group.add_argument('--remove-emojis', action='store_true', help='Strip emoji characters')
    group.add_argument('--split-name', action='store_true', help='Add First Name / Last Name columns')
    group.add_argument('--remove-empty-columns', action='store_true', help='Drop columns that are blank in every row')
    group.add_argument('--no-dates', action='store_true', help='Leave date columns untouched')
    group.add_argument('--no-emails', action='store_true', help='Leave email columns untouched')

    out = parser.add_argument_group('output')
    out.add_argument(
        '--output', '-o',
        choices=EXPORT_FORMATS,
        default='xlsx',
        help='Output format (default: xlsx)'
    )
    out.add_argument('--out-dir', default=None, help='Output directory (default: output)')
    out.add_argument('--prefix', default=None, help='Output filename prefix')
    out.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Logging level (default: INFO)'
    )
    out.add_argument('--no-log-file', action='store_true', help='Log to the console only')


def add_column_arguments(parser: argparse.ArgumentParser) -> None:
    """Column edits applied after cleaning (merge and clean only)."""
    group = parser.add_argument_group('columns')

    group.add_argument('--merge-columns', nargs='+', metavar='COL', help='Join two or more text columns into one')
    group.add_argument(
        '--as',
        dest='merge_name',
        default='Merged_Column',
        metavar='NAME',
        help='Name of the merged column (default: Merged_Column)'
    )
    group.add_argument('--separator', default=' ', help='Text between merged values (default: space)')
    group.add_argument('--split-column', metavar='COL', help='Split a column into COL_Part1..N')
    group.add_argument('--delimiter', default=' ', help='Split delimiter (default: space)')
    group.add_argument('--parts', type=int, default=2, help='Number of split parts (default: 2)')
    group.add_argument('--case', choices=CASE_MODES, help='Change text case')
    group.add_argument(
        '--case-columns',
        nargs='+',
        metavar='COL',
        help='Columns for --case (default: every column)'
    )
    group.add_argument('--to-number', nargs='+', metavar='COL', help='Convert numeric text to numbers')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='contact-cleaner',
        description='Merge, clean and extract contact lists from spreadsheets and scans',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    sub = parser.add_subparsers(dest='command', required=True)

    merge = sub.add_parser('merge', help='Merge 2-5 spreadsheets into one cleaned list')
    merge.add_argument('files', nargs='+', help='Input .xlsx, .xls or .csv files')
    selection = merge.add_mutually_exclusive_group()
    selection.add_argument('--columns', '-c', nargs='+', help='Columns to keep (by name)')
    selection.add_argument('--all-columns', action='store_true', help='Keep every detected column')
    selection.add_argument('--common-only', action='store_true', help='Keep only columns shared by most files')
    merge.add_argument('--phone-only', action='store_true', help='Keep only rows with a phone number')
    add_column_arguments(merge)
    add_cleaning_arguments(merge)

    clean = sub.add_parser('clean', help='Clean a single spreadsheet')
    clean.add_argument('file', help='Input .xlsx, .xls or .csv file')
    add_column_arguments(clean)
    add_cleaning_arguments(clean)

    extract = sub.add_parser('extract', help='Extract contacts from images or PDFs')
    extract.add_argument('files', nargs='+', help='Input images or PDFs')
    extract.add_argument(
        '--strategy', '-s',
        choices=STRATEGIES,
        default='pattern',
        help='pattern: regex per row, table: spatial columns, lines: name + phone per line (default: pattern)'
    )
    extract.add_argument(
        '--fields', '-f',
        default='name,phone,email',
        help='Comma-separated fields for the pattern strategy (default: name,phone,email)'
    )
    extract.add_argument('--relaxed', action='store_true', help='Re-analyze tables with wider tolerances')
    extract.add_argument('--raw', action='store_true', help='Skip the cleaning pass')
    extract.add_argument('--lang', default=None, help='Tesseract language (default: eng)')
    add_cleaning_arguments(extract)

    return parser


def build_options(args, base: CleaningOptions) -> CleaningOptions:
    return replace(
        base,
        standardize_empty=args.standardize_empty,
        strict_mobile=args.strict_mobile,
        invalid_phone_policy=args.invalid_phones,
        normalize_emails=not args.no_emails,
        normalize_dates=not args.no_dates,
        title_case_names=args.title_case,
        normalize_yes_no=args.yes_no,
        remove_emojis=args.remove_emojis,
        duplicate_mode='flag' if args.flag_duplicates else 'drop',
        keep='last' if args.keep_last else 'first',
        phone_only=getattr(args, 'phone_only', False),
        split_name=args.split_name,
        remove_empty_columns=args.remove_empty_columns,
    )


def build_operations(args) -> Optional[ColumnOperations]:
    """Column edits requested on the command line, or None."""
    if not hasattr(args, 'merge_columns'):
        return None
    if args.parts < 2:
        raise ValueError("--parts must be at least 2")
    if args.case_columns and not args.case:
        raise ValueError("--case-columns needs --case")

    ops = ColumnOperations(
        merge_columns=args.merge_columns or [],
        merge_name=args.merge_name,
        merge_separator=args.separator,
        split_column=args.split_column,
        split_delimiter=args.delimiter,
        split_parts=args.parts,
        case_mode=args.case,
        case_columns=args.case_columns or [],
        to_number=args.to_number or [],
    )
    return None if ops.is_empty() else ops


def run_merge(args, config: PipelineConfig, options: CleaningOptions, logger):
    ctx = PipelineContext(config=config)

    logger.info(f"Loading {len(args.files)} files...")
    load_sheets(ctx, args.files, logger=logger)
    columns = prepare_columns(ctx, logger=logger)

    if args.columns:
        selected = resolve_selection(columns, args.columns)
    elif args.all_columns:
        selected = select_all_columns(columns)
    elif args.common_only:
        selected = select_common_columns(columns, len(ctx.sheets))
    else:
        selected = ctx.selected

    names = [col.canonical_name for col in columns if col.key in selected]
    logger.info(f"Columns: {', '.join(names) if names else 'None'}")

    result = consolidate(ctx, selected, options, build_operations(args), logger=logger)
    return result.rows, result.stats, ctx.failures, ctx.file_names


def run_clean(args, config: PipelineConfig, options: CleaningOptions, logger):
    ctx = PipelineContext(config=config)
    result = clean_single_file(ctx, args.file, options, build_operations(args), logger=logger)
    return result.rows, result.stats, {}, ctx.file_names


def run_extract(args, config: PipelineConfig, options: CleaningOptions, logger):
    fields = [f.strip().lower() for f in args.fields.split(',') if f.strip()]
    logger.info(f"Strategy: {args.strategy}")
    if args.strategy == 'pattern':
        logger.info(f"Fields: {', '.join(fields)}")

    result = extract_from_images(
        args.files,
        fields,
        args.strategy,
        config,
        options=options,
        relaxed=args.relaxed,
        clean=not args.raw,
        logger=logger,
    )
    sources = [Path(name).name for name in args.files if Path(name).name not in result.failures]
    return result.rows, result.stats, result.failures, sources


RUNNERS = {
    'merge': (run_merge, 'Spreadsheet Consolidation', 'merged_contacts'),
    'clean': (run_clean, 'Single File Cleanup', 'cleaned_contacts'),
    'extract': (run_extract, 'Image / PDF Extraction', 'extracted_contacts'),
}


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(
            out_dir=args.out_dir,
            phone_format=args.phone_format,
            date_format=args.date_format,
            ocr_lang=getattr(args, 'lang', None),
            log_level=args.log_level,
        )
    except ValueError as e:
        parser.error(str(e))

    # Setup logger
    logger = setup_logger(level=config.log_level, log_dir=None if args.no_log_file else "logs")

    runner, title, default_prefix = RUNNERS[args.command]
    print_banner(logger, title)

    options = build_options(args, config.cleaning)
    logger.info(f"Phone format: {options.phone_format}")
    logger.info(f"Date format: {options.date_format}")
    logger.info(f"Duplicates: {options.duplicate_mode} (keep {options.keep})")
    logger.info(f"Output format: {args.output}")
    logger.info("")

    try:
        rows, stats, failures, sources = runner(args, config, options, logger)

        output_path = write_rows(
            rows,
            args.output,
            output_dir=str(config.out_dir),
            prefix=args.prefix or default_prefix,
            sources=sources,
            stats=stats,
        )
        logger.info(f"{args.output.upper()} output saved: {output_path}")

        print_summary(rows, stats, failures, logger)
        print_sample_rows(rows, logger)

        logger.info("")
        logger.info("Completed successfully")
        return 0

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130

    except (ContactCleanerError, ValueError) as e:
        logger.error(str(e))
        return 1

    except Exception as e:
        logger.error(f"Run failed: {e}", exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
