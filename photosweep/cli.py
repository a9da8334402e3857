# cli.py

import argparse
import json
import logging
import sys
from typing import List, Optional

from photosweep.config import SystemConfig
from photosweep.core.batch_processor import BatchProcessor
from photosweep.core.catalog import FILTERS, SORTS, CatalogQuery
from photosweep.core.errors import PhotoSweepError
from photosweep.core.ingest import PhotoIngestor
from photosweep.core.library import PhotoLibrary
from photosweep.core.models import PHOTO_STATUSES
from photosweep.security.input_validation import SecurityValidator
from photosweep.utils.file_utils import format_file_size, get_image_files
from photosweep.utils.logging_config import PerformanceLogger, setup_logging

logger = logging.getLogger(__name__)


def _print_json(data):
    print(json.dumps(data, indent=2, default=str))


def analyze_command(args, config: SystemConfig):
    """Analyze files without storing them"""
    ingestor = PhotoIngestor(config, render_thumbnails=False)
    metrics = PerformanceLogger()
    processor = BatchProcessor.from_config(config, show_progress=args.progress,
                                           performance_logger=metrics)

    output = {'photos': [], 'errors': []}
    size = processor.max_batch_size
    for start in range(0, len(args.files), size):
        result = processor.ingest_batch(ingestor, args.files[start:start + size],
                                        args.threshold)
        chunk = result.to_dict()
        output['photos'].extend(chunk['photos'])
        output['errors'].extend(chunk['errors'])

    _print_json(output)
    if args.metrics:
        metrics.save_metrics(args.metrics)
    return 0 if not output['errors'] else 1


def import_command(args, library: PhotoLibrary):
    """Import images from a directory into the library"""
    if not SecurityValidator.validate_directory(args.directory):
        print(f"Error: cannot read directory {args.directory}", file=sys.stderr)
        return 2

    image_paths = get_image_files(args.directory, recursive=not args.no_recursive)
    print(f"Found {len(image_paths)} images", file=sys.stderr)

    result = library.import_files(args.user, image_paths, args.threshold)
    duplicates = library.refresh_duplicates(args.user)

    _print_json({
        'uploaded': len(result.processed),
        'duplicates': len(duplicates),
        'errors': [e.to_dict() for e in result.errors],
    })
    return 0 if result.success else 1


def duplicates_command(args, library: PhotoLibrary):
    """Rerun the grouping pass and report duplicate groups"""
    duplicates = library.refresh_duplicates(args.user)

    groups = {}
    for assignment in duplicates:
        groups.setdefault(assignment.duplicate_group, []).append(assignment.photo_id)

    print(f"Found {len(groups)} duplicate groups with {len(duplicates)} total duplicates",
          file=sys.stderr)
    _print_json([
        {'representative': rep, 'duplicates': dups}
        for rep, dups in groups.items()
    ])
    return 0


def similar_command(args, library: PhotoLibrary):
    """Report near-duplicate clusters by perceptual hash"""
    clusters = library.find_similar(args.user, args.hash_threshold)
    _print_json([
        {'representative': rep, 'similar': members}
        for rep, members in clusters.items()
    ])
    return 0


def list_command(args, library: PhotoLibrary):
    """List photos with filter, sort and pagination"""
    query = CatalogQuery(status=args.status, filter=args.filter, sort=args.sort,
                         page=args.page, limit=args.limit,
                         blur_threshold=args.threshold)
    _print_json(library.list_photos(args.user, query).to_dict())
    return 0


def stats_command(args, library: PhotoLibrary):
    summary = library.stats(args.user).to_dict()
    summary['storage_used_human'] = format_file_size(summary['storage_used'])
    _print_json(summary)
    return 0


def lifecycle_command(args, library: PhotoLibrary):
    """trash / restore / purge / favorite a single photo"""
    actions = {
        'trash': library.trash,
        'restore': library.restore,
        'purge': library.purge,
        'favorite': library.toggle_favorite,
    }
    photo = actions[args.command](args.user, args.photo_id)
    if args.command == 'purge':
        library.empty_purged(args.user)
    _print_json({'photo_id': photo.photo_id, 'status': photo.status,
                 'favorite': photo.favorite})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="photosweep - find duplicate, blurry and screenshot photos"
    )
    parser.add_argument('-c', '--config', default='config.yaml',
                        help='YAML configuration file')
    parser.add_argument('--log-level', help='Override the configured log level')
    parser.add_argument('-u', '--user', default='local',
                        help='Library owner (default: local)')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    analyze_parser = subparsers.add_parser('analyze', help='Analyze image files')
    analyze_parser.add_argument('files', nargs='+', help='Image files')
    analyze_parser.add_argument('-t', '--threshold', type=float,
                                help='Blur quality threshold')
    analyze_parser.add_argument('--progress', action='store_true',
                                help='Show a progress bar')
    analyze_parser.add_argument('--metrics', help='Write timing metrics to JSON file')
    analyze_parser.set_defaults(func=analyze_command, needs_library=False)

    import_parser = subparsers.add_parser('import', help='Import images from directory')
    import_parser.add_argument('directory', help='Directory containing images')
    import_parser.add_argument('-t', '--threshold', type=float,
                               help='Blur quality threshold')
    import_parser.add_argument('--no-recursive', action='store_true',
                               help='Do not descend into subdirectories')
    import_parser.set_defaults(func=import_command, needs_library=True)

    duplicate_parser = subparsers.add_parser('duplicates',
                                             help='Detect duplicate photos')
    duplicate_parser.set_defaults(func=duplicates_command, needs_library=True)

    similar_parser = subparsers.add_parser('similar',
                                           help='Find near-duplicate photos')
    similar_parser.add_argument('-t', '--hash-threshold', type=int,
                                help='Maximum Hamming distance')
    similar_parser.set_defaults(func=similar_command, needs_library=True)

    list_parser = subparsers.add_parser('list', help='List photos')
    list_parser.add_argument('--status', choices=PHOTO_STATUSES, default='active')
    list_parser.add_argument('--filter', choices=FILTERS, default='all')
    list_parser.add_argument('--sort', choices=list(SORTS), default='date-desc')
    list_parser.add_argument('--page', type=int, default=1)
    list_parser.add_argument('--limit', type=int, default=20)
    list_parser.add_argument('-t', '--threshold', type=float,
                             help='Blur quality threshold')
    list_parser.set_defaults(func=list_command, needs_library=True)

    stats_parser = subparsers.add_parser('stats', help='Library summary')
    stats_parser.set_defaults(func=stats_command, needs_library=True)

    for name, help_text in (('trash', 'Move a photo to the trash'),
                            ('restore', 'Restore a photo from the trash'),
                            ('purge', 'Permanently delete a trashed photo'),
                            ('favorite', 'Toggle the favorite flag')):
        action_parser = subparsers.add_parser(name, help=help_text)
        action_parser.add_argument('photo_id')
        action_parser.set_defaults(func=lifecycle_command, needs_library=True)

    return parser


def main_cli(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    config = SystemConfig.load(args.config)
    setup_logging(args.log_level or config.log_level, config.log_dir)

    try:
        if not args.needs_library:
            return args.func(args, config)

        library = PhotoLibrary(config)
        try:
            return args.func(args, library)
        finally:
            library.close()
    except PhotoSweepError as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


def main():
    sys.exit(main_cli())


if __name__ == "__main__":
    main()
