"""
Command Line Interface for GIF Budget
Argument parsing and command execution
"""

import argparse
import atexit
import glob
import os
import signal
import sys
import traceback
import uuid
from typing import Any, Dict, List, Optional

import yaml
from tqdm import tqdm

from .compressor import GifBudgetCompressor
from .config_manager import ConfigManager, packaged_config_dir
from .error_handler import EncoderInitError, ErrorHandler, GifBudgetError
from .ffmpeg_utils import FFmpegEncoder
from .gif_utils import is_gif_file, output_path_for, probe_gif, probe_gif_file
from .logger_setup import setup_logging
from .models import CompressionRequest, human_bytes
from .temp_file_manager import TempFileManager

logger = None  # Will be initialized after logging setup

COMMAND_ALIASES = {
    'c': 'compress',
    'ls': 'presets',
    'i': 'probe',
    'info': 'probe',
    'cfg': 'config',
}


class GifBudgetCLI:
    def __init__(self):
        self.config: Optional[ConfigManager] = None
        self.encoder: Optional[FFmpegEncoder] = None
        self.compressor: Optional[GifBudgetCompressor] = None
        self.error_handler = ErrorHandler()

    def main(self, argv: Optional[List[str]] = None) -> int:
        """Main entry point; returns the process exit code"""
        global logger
        try:
            args = self._parse_arguments(argv)

            effective_level = 'DEBUG' if args.debug else args.log_level
            logger = setup_logging(
                config_path=os.path.join(args.config_dir, 'logging.yaml'),
                log_level=effective_level
            )

            self._setup_signal_handlers()
            atexit.register(TempFileManager.cleanup)

            self.config = ConfigManager(args.config_dir)
            return self._execute_command(args)

        except KeyboardInterrupt:
            if logger:
                logger.info("Operation cancelled by user")
            return 1
        except GifBudgetError as e:
            if logger:
                logger.error(str(e))
            else:
                print(f"Error: {e}")
            return 1
        except Exception as e:
            if logger:
                logger.error(f"Unexpected error: {e}")
                logger.debug(traceback.format_exc())
            else:
                print(f"Error: {e}")
            return 1
        finally:
            if self.encoder is not None:
                self.encoder.close()

    def _setup_signal_handlers(self):
        """Remove encoder workspaces when interrupted"""
        def signal_handler(signum, frame):
            try:
                signal_name = signal.Signals(signum).name
            except ValueError:
                signal_name = str(signum)
            if logger:
                logger.warning(f"Received {signal_name}, cleaning up "
                               f"{TempFileManager.get_temp_count()} temp path(s)...")
            TempFileManager.cleanup()
            sys.exit(1)

        signal.signal(signal.SIGINT, signal_handler)
        if hasattr(signal, 'SIGTERM'):
            signal.signal(signal.SIGTERM, signal_handler)

    def _parse_arguments(self, argv: Optional[List[str]] = None) -> argparse.Namespace:
        """Parse command line arguments"""
        parser = argparse.ArgumentParser(
            description="GIF Budget - shrink animated GIFs to a size budget with ffmpeg",
            epilog="Examples:\n"
                   "  %(prog)s c sticker.gif\n"
                   "  %(prog)s c \"*.gif\" -o out/ -p discord\n"
                   "  %(prog)s c big.gif --max-size 5 --max-width 640\n"
                   "  %(prog)s probe sticker.gif\n"
                   "  %(prog)s config validate\n",
            formatter_class=argparse.RawDescriptionHelpFormatter
        )

        parser.add_argument('--config-dir', default=packaged_config_dir(),
                            help='Configuration directory (default: packaged config)')
        parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                            default='INFO', help='Console log level (default: INFO)')
        parser.add_argument('-v', '--debug', action='store_true',
                            help='Enable debug output (same as --log-level DEBUG)')

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        compress_parser = subparsers.add_parser('compress', aliases=['c'],
                                                help='Compress GIFs to the preset size budget')
        compress_parser.add_argument('inputs', nargs='+', help='Input GIF files or glob patterns')
        compress_parser.add_argument('-o', '--output-dir', default='output',
                                     help='Output directory (default: ./output)')
        compress_parser.add_argument('-p', '--preset', help='Preset id (default: configured default preset)')
        compress_parser.add_argument('-s', '--max-size', type=float, metavar='MB', help='Target size in MB')
        compress_parser.add_argument('-t', '--tolerance', type=float, metavar='MB', help='Tolerance in MB')
        compress_parser.add_argument('-w', '--max-width', type=int, metavar='PX', help='Maximum width in pixels')
        compress_parser.add_argument('--min-duration', type=float, metavar='SECONDS')
        compress_parser.add_argument('--max-duration', type=float, metavar='SECONDS')
        compress_parser.add_argument('--duration-epsilon', type=float, metavar='SECONDS')
        timing = compress_parser.add_mutually_exclusive_group()
        timing.add_argument('--prefer-stable-timing', dest='prefer_stable_timing', action='store_true', default=None,
                            help='Try full-width profiles that keep the frame rate first')
        timing.add_argument('--no-prefer-stable-timing', dest='prefer_stable_timing', action='store_false')
        compress_parser.add_argument('--verbose-trials', dest='verbose', action='store_true', default=None,
                                     help='Log every trial at INFO level')
        compress_parser.add_argument('--show-ffmpeg', dest='show_encoder_log', action='store_true', default=None,
                                     help='Forward ffmpeg output to the log')
        compress_parser.add_argument('--suffix', help='Suffix for output files (default: _compressed)')

        subparsers.add_parser('presets', aliases=['ls'], help='List configured presets')

        probe_parser = subparsers.add_parser('probe', aliases=['i', 'info'], help='Show GIF metadata')
        probe_parser.add_argument('input', help='GIF file')

        config_parser = subparsers.add_parser('config', aliases=['cfg'], help='Configuration management')
        config_subparsers = config_parser.add_subparsers(dest='config_action')
        config_subparsers.add_parser('show', help='Show current configuration')
        config_subparsers.add_parser('validate', help='Validate configuration files')

        args = parser.parse_args(argv)
        if not args.command:
            parser.print_help()
            parser.exit(1)
        return args

    def _execute_command(self, args: argparse.Namespace) -> int:
        """Execute the requested command"""
        command = COMMAND_ALIASES.get(args.command, args.command)

        if command == 'compress':
            return self._compress(args)
        elif command == 'presets':
            return self._show_presets()
        elif command == 'probe':
            return self._probe(args)
        elif command == 'config':
            return self._handle_config_command(args)

        logger.error(f"Unknown command: {command}")
        return 1

    def _is_glob_pattern(self, path: str) -> bool:
        return any(char in path for char in ['*', '?', '['])

    def _expand_inputs(self, inputs: List[str]) -> List[str]:
        files: List[str] = []
        for item in inputs:
            candidates = sorted(glob.glob(item)) if self._is_glob_pattern(item) else [item]
            if not candidates:
                logger.warning(f"No files match pattern: {item}")
            for candidate in candidates:
                if not os.path.isfile(candidate):
                    logger.warning(f"Skipping missing input: {candidate}")
                elif not is_gif_file(candidate):
                    logger.warning(f"Skipping non-GIF input: {candidate}")
                elif candidate not in files:
                    files.append(candidate)
        return files

    def _constraint_overrides(self, args: argparse.Namespace, preset_id: str) -> Dict[str, Any]:
        """Map compress options onto dot-path config keys of the selected preset"""
        values = {
            'max_mb': args.max_size,
            'tolerance_mb': args.tolerance,
            'max_width': args.max_width,
            'min_duration': args.min_duration,
            'max_duration': args.max_duration,
            'duration_epsilon': args.duration_epsilon,
            'prefer_stable_timing': args.prefer_stable_timing,
            'verbose': args.verbose,
            'show_encoder_log': args.show_encoder_log,
        }
        overrides = {f'gif_budget.presets.{preset_id}.{key}': value for key, value in values.items()}
        overrides['gif_budget.output.suffix'] = args.suffix
        return overrides

    def _initialize_encoder(self) -> None:
        encoder_cfg = self.config.get_encoder_config()
        self.encoder = FFmpegEncoder(
            binary=encoder_cfg['binary'],
            timeout=encoder_cfg['timeout'],
            workspace_dir=encoder_cfg['workspace_dir']
        )
        self.encoder.load()
        self.compressor = GifBudgetCompressor(self.encoder)

    def _compress(self, args: argparse.Namespace) -> int:
        preset_id = self.config.get_preset(args.preset)['id']
        self.config.update_from_args(self._constraint_overrides(args, preset_id))
        constraints = self.config.constraints_for(preset_id)
        custom_profiles = self.config.get_custom_profiles()
        suffix = self.config.get('gif_budget.output.suffix') or '_compressed'

        files = self._expand_inputs(args.inputs)
        if not files:
            logger.error("No GIF inputs to process")
            return 1

        try:
            self._initialize_encoder()
        except EncoderInitError as e:
            self.error_handler.handle_error(e, files[0], continue_processing=False)
            return 1

        os.makedirs(args.output_dir, exist_ok=True)
        successful = 0
        for path in tqdm(files, desc="Compressing", unit="gif", disable=len(files) < 2):
            try:
                with open(path, 'rb') as handle:
                    data = handle.read()
                info = probe_gif(data)
                request = CompressionRequest(
                    task_id=uuid.uuid4().hex[:8],
                    data=data,
                    constraints=constraints,
                    width=info.width,
                    duration=info.duration,
                    custom_profiles=custom_profiles
                )
                logger.info(f"{os.path.basename(path)} -> task {request.task_id}")
                result = self.compressor.compress(request)

                output_path = output_path_for(path, args.output_dir, suffix)
                with open(output_path, 'wb') as handle:
                    handle.write(result.data)
                if result.passed_through:
                    status = 'copied' if result.hit else 'unchanged, every trial failed'
                else:
                    status = 'within tolerance' if result.hit else 'closest match'
                out_info = probe_gif(result.data)
                out_duration = f"{out_info.duration:.2f}s" if out_info.duration is not None else '?'
                logger.info(f"Saved {output_path}: {human_bytes(len(data))} -> {human_bytes(result.size)}, "
                            f"{out_info.width or '?'}px, {out_duration} ({status}, profile {result.profile_index})")
                successful += 1
            except EncoderInitError as e:
                self.error_handler.handle_error(e, path, continue_processing=False)
                break
            except (GifBudgetError, OSError) as e:
                self.error_handler.handle_error(e, path)

        self.error_handler.log_batch_summary(len(files), successful)
        summary = self.error_handler.get_error_summary()
        if summary['total_errors']:
            logger.info(f"Retryable failures: {summary['retryable_errors']}, "
                        f"not retryable: {summary['non_retryable_errors']}")
        return 0 if successful == len(files) else 1

    def _show_presets(self) -> int:
        default_id = self.config.get('gif_budget.default_preset')
        for preset_id in sorted(self.config.list_presets()):
            p = self.config.get_preset(preset_id)
            marker = '*' if preset_id == default_id else ' '
            print(f"{marker} {preset_id:<12} {p['name']}: {p['max_mb']}MB · {p['max_width']}px · "
                  f"tolerance {p['tolerance_mb']}MB · {p['min_duration']}-{p['max_duration']}s")
        return 0

    def _probe(self, args: argparse.Namespace) -> int:
        if not os.path.isfile(args.input):
            logger.error(f"File not found: {args.input}")
            return 1
        info = probe_gif_file(args.input)
        size = os.path.getsize(args.input)
        duration = f"{info.duration:.2f}s" if info.duration is not None else 'unknown'
        print(f"{args.input}: {human_bytes(size)} · {info.width or '?'}x{info.height or '?'} · "
              f"{duration} · {info.frame_count if info.frame_count is not None else '?'} frames")
        return 0

    def _handle_config_command(self, args: argparse.Namespace) -> int:
        action = getattr(args, 'config_action', None) or 'show'
        if action == 'validate':
            return 0 if self.config.validate_config() else 1
        print(yaml.safe_dump({'gif_budget': self.config.get('gif_budget', {})},
                             sort_keys=False, allow_unicode=True))
        return 0


def main(argv: Optional[List[str]] = None) -> None:
    sys.exit(GifBudgetCLI().main(argv))


if __name__ == '__main__':
    main()
