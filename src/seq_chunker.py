import argparse
import cProfile
import logging
import pstats
import sys
import time
from io import StringIO

from boundary_scanner import SECURITY_MARGIN
from chunk_planning import parse_size
from chunk_processor import chunk_inputs
from data_structures import ChunkOptions
from errors import (ConfigurationError, StreamIOError,
                    UnrecognizedFormatError, UnsupportedCombinationError)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

__version__ = "1.0.0"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Split FASTA/FASTQ files into evenly sized, record-aligned chunks.",
        formatter_class=argparse.RawTextHelpFormatter,
    )

    # Positional Arguments
    parser.add_argument(
        "input_paths",
        metavar="FILE",
        nargs="+",
        help="FASTA/FASTQ input file(s), '-' reads STDIN",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    # Chunking Group
    chunk_group = parser.add_argument_group("CHUNKING (exactly one)")
    chunk_group.add_argument(
        "-n",
        "--chunk_number",
        type=int,
        metavar="INT",
        default=None,
        help="Number of chunks per input file, needs a regular file [null]",
    )
    chunk_group.add_argument(
        "-s",
        "--chunk_size",
        type=str,
        metavar="SIZE",
        default=None,
        help="Chunk size in bytes, suffixes k/M/G allowed (e.g. 10M).\n"
        "Required when reading from a pipe or STDIN [null]",
    )

    # Selection Group
    select_group = parser.add_argument_group("CHUNK SELECTION")
    select_group.add_argument(
        "-f", "--first_chunk", type=int, metavar="INT", default=1,
        help="First chunk to output [1]",
    )
    select_group.add_argument(
        "-l", "--last_chunk", type=int, metavar="INT", default=None,
        help="Last chunk to output [null: until end of input]",
    )
    select_group.add_argument(
        "-x", "--chunk_step", type=int, metavar="INT", default=1,
        help="Output one block of chunks every INT chunks [1]",
    )
    select_group.add_argument(
        "-y", "--chunks_per_step", type=int, metavar="INT", default=1,
        help="Number of consecutive chunks output per step [1]",
    )

    # Paired-end Group
    paired_group = parser.add_argument_group("PAIRED-END")
    paired_group.add_argument(
        "--paired", type=int, metavar="INT", default=0, choices=[0, 1],
        help="Inputs are FASTQ mate files given two at a time (0/1) [0]",
    )
    paired_group.add_argument(
        "--interleaved", type=int, metavar="INT", default=0, choices=[0, 1],
        help="Inputs are interleaved FASTQ, never split mates (0/1) [0]",
    )

    # Output Group
    output_group = parser.add_argument_group("OUTPUT")
    output_group.add_argument(
        "-o", "--out", type=str, metavar="STR", default=None,
        help="Output file, or a pattern with a printf conversion for the chunk\n"
        "number (e.g. chunk.%%03d.fq) to write one file per chunk.\n"
        "'{stem}' is replaced by the input name [STDOUT]",
    )
    output_group.add_argument(
        "--out2", type=str, metavar="STR", default=None,
        help="Output file or pattern for the second mates, enables\n"
        "de-interleaved output in paired/interleaved mode [null]",
    )

    # Advanced Group
    adv_group = parser.add_argument_group("ADVANCED")
    adv_group.add_argument(
        "--security_margin", type=int, metavar="INT", default=SECURITY_MARGIN,
        help=f"Bytes scanned before each chunk edge [{SECURITY_MARGIN}]",
    )
    adv_group.add_argument(
        "--verbose", type=int, metavar="INT", default=0, choices=[0, 1],
        help="Enable verbose logging (0/1) [0]",
    )
    adv_group.add_argument(
        "--quiet", type=int, metavar="INT", default=0, choices=[0, 1],
        help="Only log warnings and errors (0/1) [0]",
    )
    adv_group.add_argument(
        "--profile", type=int, metavar="INT", default=0, choices=[0, 1],
        help="Enable cProfile profiling (0/1) [0]",
    )

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose == 1:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet == 1:
        logging.getLogger().setLevel(logging.WARNING)
    else:
        logging.getLogger().setLevel(logging.INFO)
    logging.captureWarnings(True)

    start_time = time.perf_counter()

    profiler = None
    if args.profile == 1:
        profiler = cProfile.Profile()
        profiler.enable()
        logger.info("Profiling enabled...")

    try:
        options = ChunkOptions(
            chunk_size=parse_size(args.chunk_size) if args.chunk_size is not None else None,
            chunk_number=args.chunk_number,
            first_chunk=args.first_chunk,
            last_chunk=args.last_chunk,
            chunk_step=args.chunk_step,
            chunks_per_step=args.chunks_per_step,
        )
        emitted = chunk_inputs(
            args.input_paths,
            options,
            out=args.out,
            out2=args.out2,
            paired=(args.paired == 1),
            interleaved=(args.interleaved == 1),
            security_margin=args.security_margin,
        )
    except (ConfigurationError, UnrecognizedFormatError,
            UnsupportedCombinationError, StreamIOError) as e:
        logger.error(f"ERROR: {e}")
        sys.exit(1)

    if profiler is not None:
        profiler.disable()
        s = StringIO()
        ps = pstats.Stats(profiler, stream=s).sort_stats("cumulative")
        ps.print_stats(20)
        logger.info("Profiling Results:\n" + s.getvalue())

    end_time = time.perf_counter()
    logger.info(f"Emitted {emitted} chunk(s) in {end_time - start_time:.4f} seconds")


if __name__ == "__main__":
    main()
