#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MaskMiner — Password Mask Space Optimizer

Features:
- Classifies every word of a wordlist into a character-class mask (l/u/d/s)
- Counts mask occurrences, skipping malformed entries
- Computes the exact keyspace of each mask with a size ceiling
- Ranks masks by occurrence density (count / keyspace)
- Greedily selects the best masks that fit into a total space budget
- Prints records or writes a Hashcat .hcmask file
"""
import argparse
import io
import logging
import math
import os
import signal
import string
import sys
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Iterator, List, NamedTuple, Optional, Union

from tqdm import tqdm

# =============================================
# PROGRESS BAR
# =============================================
def progress(it, **kw):
    return tqdm(it, **kw) if sys.stdout.isatty() else it

# =============================================
# Logging
# =============================================
log = logging.getLogger(__name__)

def sigint_handler(signum, frame):
    log.warning("\nInterrupted by user — exiting cleanly")
    sys.exit(0)

# =============================================
# CONFIGURATION
# =============================================
# Mask symbols
LOWER = "l"
UPPER = "u"
DIGIT = "d"
SPECIAL = "s"

# Default special set: the 32 printable ASCII punctuation characters.
SPECIAL_CHARS = frozenset(string.punctuation)
# Alternative special set that also counts the space character (33 chars).
SPECIAL_CHARS_WITH_SPACE = frozenset(" " + string.punctuation)

LOWER_CARDINALITY = 26
UPPER_CARDINALITY = 26
DIGIT_CARDINALITY = 10

# "Unbounded" space limit sentinel (largest unsigned 64-bit value)
MAX_SPACE = 2 ** 64 - 1

_ASCII_LOWER = frozenset(string.ascii_lowercase)
_ASCII_UPPER = frozenset(string.ascii_uppercase)
_ASCII_DIGITS = frozenset(string.digits)

# =============================================
# ERRORS
# =============================================
class MaskError(Exception):
    """
    Base class for all mask errors.
    New subclasses may be added; catch MaskError as a fallback.
    """


class InvalidCharacter(MaskError, ValueError):
    """A word contains a character outside the four mask classes"""

    def __init__(self, char: str):
        self.char = char
        super().__init__(f"invalid character {char!r}")


class InvalidMaskSymbol(MaskError, ValueError):
    """A mask contains a symbol other than l, u, d or s"""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"unknown mask symbol {symbol!r}")


class RankingError(MaskError):
    """Mask costs could not be ordered (internal consistency failure)"""

# =============================================
# CLASSIFIER
# =============================================
def special_set(specials: Iterable[str]) -> FrozenSet[str]:
    """Normalise a caller-supplied special set (duplicates collapse)"""
    if isinstance(specials, frozenset):
        return specials
    return frozenset(specials)

def generate_mask(word: str, specials: Iterable[str] = SPECIAL_CHARS) -> str:
    """
    Map a word to its mask, one symbol per character.
    Raises InvalidCharacter on the first character outside the alphabet.
    """
    specials = special_set(specials)
    mask = []
    for c in word:
        if c in _ASCII_LOWER:
            mask.append(LOWER)
        elif c in _ASCII_UPPER:
            mask.append(UPPER)
        elif c in _ASCII_DIGITS:
            mask.append(DIGIT)
        elif c in specials:
            mask.append(SPECIAL)
        else:
            raise InvalidCharacter(c)
    return "".join(mask)

def class_cardinality(symbol: str, specials: Iterable[str] = SPECIAL_CHARS) -> int:
    """Number of characters a single mask symbol stands for"""
    if symbol == LOWER:
        return LOWER_CARDINALITY
    if symbol == UPPER:
        return UPPER_CARDINALITY
    if symbol == DIGIT:
        return DIGIT_CARDINALITY
    if symbol == SPECIAL:
        return len(special_set(specials))
    raise InvalidMaskSymbol(symbol)

def to_hashcat(mask: str) -> str:
    """Render a mask in Hashcat syntax: 'ulld' → '?u?l?l?d'"""
    for symbol in mask:
        if symbol not in (LOWER, UPPER, DIGIT, SPECIAL):
            raise InvalidMaskSymbol(symbol)
    return "".join(f"?{symbol}" for symbol in mask)

# =============================================
# AGGREGATOR
# =============================================
def read_wordlist(path: Union[str, Path]) -> Iterator[str]:
    """
    Lazily yield the lines of a wordlist ('-' reads stdin).
    Lines split on '\\n' only; one '\\n' or '\\r\\n' terminator is removed.
    The file is read as strict UTF-8, so undecodable bytes surface as
    UnicodeDecodeError like any OS error.
    """
    if str(path) == "-":
        stdin = io.TextIOWrapper(sys.stdin.buffer, encoding="utf-8", newline="\n")
        try:
            for line in stdin:
                yield strip_line_ending(line)
        finally:
            # Leave sys.stdin usable once the wrapper is collected
            stdin.detach()
        return

    with Path(path).expanduser().open("r", encoding="utf-8", newline="\n") as f:
        for line in f:
            yield strip_line_ending(line)

def strip_line_ending(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
    return line

def count_masks(words: Iterable[str], specials: Iterable[str] = SPECIAL_CHARS) -> Counter:
    """
    Classify every word and count mask occurrences.

    Words with characters outside the alphabet are skipped, as are empty
    words. Errors raised while reading from `words` propagate untouched.
    """
    specials = special_set(specials)
    masks_counts = Counter()
    total = 0
    skipped = 0

    for word in progress(words, desc="Classifying", unit=" words", leave=False):
        total += 1
        try:
            mask = generate_mask(word, specials)
        except InvalidCharacter as e:
            skipped += 1
            log.debug(f"Skipping word #{total:,}: {e}")
            continue
        if not mask:
            continue
        masks_counts[mask] += 1

    log.info(f"Read {total:,} words, skipped {skipped:,} invalid, "
             f"found {len(masks_counts):,} distinct masks.")
    return masks_counts

# =============================================
# SPACE RANKER
# =============================================
@dataclass(frozen=True)
class ComputedMask:
    mask: str
    size: int
    count: int
    cost: float

    @property
    def hashcat(self) -> str:
        return to_hashcat(self.mask)

    def __str__(self) -> str:
        return f"{self.mask}\t{self.size}\t{self.count}\t{self.cost!r}"

def compute_mask_size(mask: str, ceiling: int, specials: Iterable[str] = SPECIAL_CHARS) -> Optional[int]:
    """
    Exact keyspace of a mask, or None if it would exceed `ceiling`.
    The product is built in integer arithmetic and checked before every
    multiplication.
    """
    if ceiling < 0:
        raise ValueError(f"ceiling must be non-negative, got {ceiling}")
    specials = special_set(specials)
    result = 1
    if ceiling < result:
        return None

    for symbol in mask:
        multiplier = class_cardinality(symbol, specials)
        if ceiling // result < multiplier:
            return None
        result *= multiplier

    return result

def compute_mask_cost(mask_size: int, occurrences_count: int) -> float:
    return float(occurrences_count) / float(mask_size)

def _cost_key(computed: ComputedMask) -> float:
    if math.isnan(computed.cost):
        raise RankingError(f"cost of mask {computed.mask!r} is not a number")
    return computed.cost

def rank_masks(masks_counts: Dict[str, int], ceiling: int,
               specials: Iterable[str] = SPECIAL_CHARS) -> List[ComputedMask]:
    """
    Size and score every mask, dropping the ones over `ceiling`.
    Returns masks by descending cost; ties keep the input order.
    """
    specials = special_set(specials)
    ranked = []
    dropped = 0

    for mask, mask_count in masks_counts.items():
        mask_size = compute_mask_size(mask, ceiling, specials)
        if mask_size is None:
            dropped += 1
            continue
        ranked.append(ComputedMask(
            mask=mask,
            size=mask_size,
            count=mask_count,
            cost=compute_mask_cost(mask_size, mask_count),
        ))

    if dropped:
        log.info(f"Dropped {dropped:,} masks larger than {ceiling:,}.")

    ranked.sort(key=_cost_key, reverse=True)
    return ranked

# =============================================
# BUDGET SELECTOR
# =============================================
class Selection(NamedTuple):
    masks: List[ComputedMask]
    used: int

def select_masks(ranked: Iterable[ComputedMask], budget: int) -> Selection:
    """
    Greedy first-fit by cost: take each mask whose size still fits in
    what is left of `budget`. Skipped masks do not stop the walk.
    """
    if budget < 0:
        raise ValueError(f"budget must be non-negative, got {budget}")

    selected = []
    used = 0
    for candidate in ranked:
        if used + candidate.size <= budget:
            selected.append(candidate)
            used += candidate.size

    return Selection(selected, used)

# =============================================
# PIPELINE
# =============================================
def mine_masks(words: Iterable[str], space_limit: int = MAX_SPACE, ceiling: Optional[int] = None,
               specials: Iterable[str] = SPECIAL_CHARS) -> Selection:
    """
    Run the full pipeline over a stream of words.
    `ceiling` defaults to `space_limit`: a mask bigger than the whole
    budget could never be selected.
    """
    specials = special_set(specials)
    if ceiling is None:
        ceiling = space_limit

    log.info("Phase 1/3: Counting masks...")
    masks_counts = count_masks(words, specials)

    log.info("Phase 2/3: Ranking masks...")
    ranked = rank_masks(masks_counts, ceiling, specials)

    log.info("Phase 3/3: Selecting masks within budget...")
    selection = select_masks(ranked, space_limit)
    log.info(f"Selected {len(selection.masks):,} of {len(ranked):,} masks "
             f"covering {selection.used:,} candidates.")
    return selection

def parse_file(path: Union[str, Path], space_limit: int = MAX_SPACE, ceiling: Optional[int] = None,
               specials: Iterable[str] = SPECIAL_CHARS) -> Selection:
    log.info(f"Reading wordlist: {path}")
    return mine_masks(read_wordlist(path), space_limit, ceiling, specials)

# =============================================
# OUTPUT
# =============================================
def write_hcmask(path: Path, masks: List[ComputedMask]):
    path.write_text("".join(f"{m.hashcat}\n" for m in masks), encoding="utf-8")
    log.info(f" → {path.name} ({len(masks):,} masks)")

def print_masks(masks: List[ComputedMask], hashcat: bool = False, stream=None) -> bool:
    """Write one record per mask. Returns False if the reader went away."""
    stream = stream if stream is not None else sys.stdout
    try:
        for m in masks:
            stream.write(f"{m.hashcat if hashcat else m}\n")
        stream.flush()
    except BrokenPipeError:
        # e.g. piped into head
        return False
    return True

def silence_stdout():
    """Point stdout at devnull so the exit-time flush cannot fail again"""
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, sys.stdout.fileno())
    os.close(devnull)

# =============================================
# CLI
# =============================================
def non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be non-negative: {value}")
    return number

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="MaskMiner — print the best masks of a wordlist up to a space limit")
    parser.add_argument("wordlist", help="Wordlist to parse ('-' for stdin)")
    parser.add_argument("-l", "--space-limit", type=non_negative_int, default=MAX_SPACE,
                        help=f"Total keyspace budget (default: {MAX_SPACE})")
    parser.add_argument("-c", "--ceiling", type=non_negative_int, default=None,
                        help="Largest keyspace kept for a single mask (default: space limit)")
    parser.add_argument("--space-in-specials", action="store_true",
                        help="Count the space character as a special symbol")
    parser.add_argument("--hashcat", action="store_true", help="Print masks in Hashcat syntax")
    parser.add_argument("-o", "--output", type=Path, default=None, help="Also write a .hcmask file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log skipped words")
    return parser

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s] %(message)s",
        datefmt="%H:%M:%S"
    )
    signal.signal(signal.SIGINT, sigint_handler)

    specials = SPECIAL_CHARS_WITH_SPACE if args.space_in_specials else SPECIAL_CHARS
    try:
        selection = parse_file(args.wordlist, args.space_limit, args.ceiling, specials)
    except (OSError, UnicodeDecodeError) as e:
        log.error(f"Failed to read {args.wordlist}: {e}")
        return 1

    if not print_masks(selection.masks, hashcat=args.hashcat):
        silence_stdout()
    if args.output:
        try:
            write_hcmask(args.output, selection.masks)
        except OSError as e:
            log.error(f"Failed to write {args.output}: {e}")
            return 1
    log.info(f"Total space used: {selection.used:,}")
    return 0

if __name__ == "__main__":
    sys.exit(main())
