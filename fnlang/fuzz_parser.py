#!/usr/bin/env python3
"""
Differential fuzzer for the fnlang parsers.

Each input is parsed by the recursive descent parser and by the Lark
grammar. An input is a finding when:
- either parser raises something other than ParseError
- a parse takes longer than the time limit
- the parsers disagree on the tree, or on the error class and offset
- an accepted program, once formatted, does not parse back to itself

Inputs come from a small grammar-driven generator and from token- and
character-level mutation of a growing corpus.

Usage:
    fnlang-fuzz [--duration MINUTES] [--iterations N] [--seed SEED] [--findings-dir DIR]
"""

import argparse
import hashlib
import random
import signal
import string
import time
import traceback
from collections import Counter
from contextlib import contextmanager
from pathlib import Path

from .errors import ParseError
from .lexer import Lexer, TokenType
from .parser import parse as rd_parse
from .peg_parser import parse as peg_parse
from .printer import format_program

FINDINGS_DIR = Path("fuzz_findings")

TIME_LIMIT = 5  # seconds per input
MAX_CORPUS = 1000


class FuzzTimeout(Exception):
    pass


@contextmanager
def time_limit(seconds):
    """Abort the block with FuzzTimeout after `seconds` (no-op without SIGALRM)."""
    if not hasattr(signal, 'SIGALRM'):
        yield
        return

    def expire(signum, frame):
        raise FuzzTimeout(f"no result after {seconds}s")

    previous = signal.signal(signal.SIGALRM, expire)
    signal.alarm(seconds)
    try:
        yield
    finally:
        signal.alarm(0)
        signal.signal(signal.SIGALRM, previous)


def _outcome(parse, source: str):
    """Summarize a parse as ('ok', tree) or ('error', class name, offset)."""
    try:
        return ('ok', parse(source))
    except ParseError as e:
        return ('error', type(e).__name__, e.offset)


def _tokens(source: str):
    """Source slices of the significant tokens, or None if the text does not lex."""
    try:
        tokens = Lexer(source).tokenize()
    except ParseError:
        return None
    return [t.value for t in tokens if t.type != TokenType.EOF]


class Fuzzer:
    """Generates inputs and cross-checks both parsers on them."""

    NAMES = ["x", "y", "f", "g", "_", "acc", "std::add", "m::f", "fn::x", "a::lambda", "fnord"]
    FRAGMENTS = [
        "fn", "lambda", "(", ")", "{", "}", ",", "+", "-", "*", "/",
        "::", ":", "0", "42", "//\n", "/* c */", "/*", "*/",
    ]
    SPECIALS = ["\x00", "\xff", "\r\n", "\f", "\v", "\t", "α", "🎉", "/*/", "::"]

    # Known good programs the mutators start from
    SEED_CORPUS = [
        '',
        'fn f() { 1 }',
        'fn f(x) { x }',
        'fn f(x, y) { x + y }',
        'fn f() { 1 + 2 * 3 }',
        'fn f() { 10 - 2 - 3 }',
        'fn f() { (1 + 2) * 3 }',
        'fn f() { g(1)(2, 3) }',
        'fn f() { g() }',
        'fn f() { a::b }',
        'fn f() { std::add(1, 2) }',
        'fn f() { lambda x y { x + y } }',
        'fn f() { lambda { 1 } }',
        'fn f() { lambda x { lambda y { x * y } } }',
        'fn f() { 007 }',
        'fn f() { g(lambda x { x })(h(1), 2) / 4 }',
        'fn f() { 1 } fn g(a) { f() + a }',
        '// comment\nfn f() { /* inline */ 1 }',
    ]

    def __init__(self, seed=None, findings_dir: Path = None):
        self.rng = random.Random(seed)
        self.findings_dir = Path(findings_dir) if findings_dir else FINDINGS_DIR
        self.stats = Counter()
        self.saved = set()
        self.started = None

    # =========================================================================
    # Generation
    # =========================================================================

    def random_identifier(self) -> str:
        if self.rng.random() < 0.6:
            return self.rng.choice(self.NAMES)
        name = self.rng.choice(string.ascii_letters + "_") + "".join(
            self.rng.choices(string.ascii_letters + string.digits + "_", k=self.rng.randint(0, 8)))
        # Bare keywords are not identifiers
        return "_" + name if name in ("fn", "lambda") else name

    def random_number(self) -> str:
        if self.rng.random() < 0.8:
            return str(self.rng.randint(0, 999))
        return self.rng.choice(["0", "000", "0042", str(2 ** 80)])

    def random_expr(self, depth=0) -> str:
        """A well-formed expression no deeper than six levels."""
        if depth > 5 or self.rng.random() < 0.3:
            return self.random_identifier() if self.rng.random() < 0.5 else self.random_number()

        kind = self.rng.choice(["binary", "call", "lambda", "group", "comment"])
        if kind == "binary":
            op = self.rng.choice("+-*/")
            return f"{self.random_expr(depth + 1)} {op} {self.random_expr(depth + 1)}"
        if kind == "call":
            lists = "".join(
                "(" + ", ".join(self.random_expr(depth + 1)
                                for _ in range(self.rng.randint(0, 3))) + ")"
                for _ in range(self.rng.randint(1, 3))
            )
            return self.random_identifier() + lists
        if kind == "lambda":
            params = "".join(f"{self.random_identifier()} " for _ in range(self.rng.randint(0, 3)))
            return f"lambda {params}{{ {self.random_expr(depth + 1)} }}"
        if kind == "group":
            return f"({self.random_expr(depth + 1)})"
        return f"/* c */ {self.random_expr(depth + 1)}"

    def generate_random(self) -> str:
        """A well-formed program of zero to four functions."""
        functions = []
        for _ in range(self.rng.randint(0, 4)):
            params = ", ".join(self.random_identifier() for _ in range(self.rng.randint(0, 3)))
            functions.append(f"fn {self.random_identifier()}({params}) {{ {self.random_expr()} }}")
        return "\n".join(functions)

    # =========================================================================
    # Mutation
    # =========================================================================

    def mutate(self, source: str) -> str:
        """Apply one randomly chosen mutation."""
        words = _tokens(source)
        if words and self.rng.random() < 0.5:
            return " ".join(self._mutate_tokens(words))

        mutator = self.rng.choice([
            self._mutate_insert_fragment,
            self._mutate_delete_chunk,
            self._mutate_swap_chunks,
            self._mutate_repeat_chunk,
            self._mutate_flip_char,
            self._mutate_insert_special,
        ])
        return mutator(source)

    def _mutate_tokens(self, words):
        """Drop, duplicate, swap or replace one token."""
        words = list(words)
        i = self.rng.randrange(len(words))
        action = self.rng.randint(0, 3)
        if action == 0:
            del words[i]
        elif action == 1:
            words.insert(i, words[i])
        elif action == 2 and len(words) > 1:
            j = self.rng.randrange(len(words))
            words[i], words[j] = words[j], words[i]
        else:
            words[i] = self.rng.choice(self.FRAGMENTS + self.NAMES)
        return words

    def _mutate_insert_fragment(self, s: str) -> str:
        pos = self.rng.randint(0, len(s))
        fragment = self.rng.choice([
            self.rng.choice(self.FRAGMENTS),
            self.random_identifier(),
            self.random_number(),
            " " * self.rng.randint(1, 4),
            "\n",
        ])
        return s[:pos] + fragment + s[pos:]

    def _mutate_delete_chunk(self, s: str) -> str:
        if len(s) < 2:
            return s
        start = self.rng.randrange(len(s))
        stop = min(len(s), start + self.rng.randint(1, 20))
        return s[:start] + s[stop:]

    def _mutate_swap_chunks(self, s: str) -> str:
        """Rotate the text around its midpoint."""
        if len(s) < 4:
            return s
        half = len(s) // 2
        return s[half:] + s[:half]

    def _mutate_repeat_chunk(self, s: str) -> str:
        if len(s) < 2:
            return s + s
        start = self.rng.randrange(len(s))
        stop = min(len(s), start + self.rng.randint(1, 10))
        return s[:stop] + s[start:stop] * self.rng.randint(1, 5) + s[stop:]

    def _mutate_flip_char(self, s: str) -> str:
        if not s:
            return s
        pos = self.rng.randrange(len(s))
        flipped = chr(ord(s[pos]) ^ self.rng.randint(1, 127))
        return s[:pos] + flipped + s[pos + 1:]

    def _mutate_insert_special(self, s: str) -> str:
        pos = self.rng.randint(0, len(s))
        return s[:pos] + self.rng.choice(self.SPECIALS) + s[pos:]

    # =========================================================================
    # Checking
    # =========================================================================

    def save_finding(self, source: str, summary: str, category: str, details: str = ""):
        """Write a finding to the findings directory, once per distinct input."""
        digest = hashlib.sha1(source.encode('utf-8', errors='replace')).hexdigest()[:10]
        if digest in self.saved:
            return
        self.saved.add(digest)

        self.findings_dir.mkdir(parents=True, exist_ok=True)
        path = self.findings_dir / f"{category}_{digest}.txt"
        report = [f"# {category}: {summary}", "", source]
        if details:
            report += ["", "# details", details]
        path.write_text("\n".join(report) + "\n", encoding='utf-8', errors='replace')
        print(f"[!] {category}: {path}")

    def test_input(self, source: str) -> bool:
        """Cross-check one input. Returns True when it produced a finding."""
        try:
            with time_limit(TIME_LIMIT):
                rd = _outcome(rd_parse, source)
                peg = _outcome(peg_parse, source)
        except FuzzTimeout as e:
            self.stats["timeouts"] += 1
            self.save_finding(source, str(e), "timeout")
            return True
        except Exception as e:
            self.stats["crashes"] += 1
            self.save_finding(source, f"{type(e).__name__}: {e}", "crash", traceback.format_exc())
            return True

        if rd != peg:
            self.stats["mismatches"] += 1
            self.save_finding(source, "parsers disagree", "mismatch",
                              f"recursive descent: {rd!r}\nlark: {peg!r}")
            return True

        if rd[0] == 'error':
            self.stats["parse_error"] += 1
            return False

        self.stats["parse_ok"] += 1
        formatted = format_program(rd[1])
        reparsed = _outcome(rd_parse, formatted)
        if reparsed != rd:
            self.stats["roundtrip_failures"] += 1
            self.save_finding(source, "formatted program parses differently", "roundtrip",
                              f"formatted:\n{formatted}\nreparsed: {reparsed!r}")
            return True
        return False

    @property
    def findings(self) -> int:
        return sum(self.stats[k] for k in ("crashes", "timeouts", "mismatches", "roundtrip_failures"))

    # =========================================================================
    # Driver
    # =========================================================================

    def _next_input(self, corpus) -> str:
        roll = self.rng.random()
        if roll < 0.3:
            return self.generate_random()
        if roll < 0.8:
            source = self.mutate(self.rng.choice(corpus))
            for _ in range(self.rng.randint(0, 2)):
                source = self.mutate(source)
            return source
        return self.rng.choice(corpus)

    def run(self, duration_minutes: float = None, iterations: int = None):
        """Fuzz until the time or iteration budget is spent (or Ctrl-C)."""
        self.started = time.time()
        deadline = self.started + duration_minutes * 60 if duration_minutes else None
        corpus = list(self.SEED_CORPUS)

        print(f"fuzzing with {len(corpus)} seed inputs, findings go to {self.findings_dir}")
        try:
            while not (deadline and time.time() > deadline
                       or iterations is not None and self.stats["iterations"] >= iterations):
                self.stats["iterations"] += 1
                source = self._next_input(corpus)

                # Keep findings and a sample of ordinary inputs for further mutation
                if self.test_input(source) or (self.rng.random() < 0.02 and len(source) < 500):
                    corpus.append(source)
                    if len(corpus) > MAX_CORPUS:
                        del corpus[self.rng.randrange(len(self.SEED_CORPUS), len(corpus))]

                if self.stats["iterations"] % 1000 == 0:
                    self.print_stats()
        except KeyboardInterrupt:
            print("interrupted")

        print("Final Statistics:")
        self.print_stats()

    def print_stats(self):
        elapsed = time.time() - self.started
        rate = self.stats["iterations"] / elapsed if elapsed > 0 else 0
        print(f"[{elapsed:.1f}s] {self.stats['iterations']} inputs ({rate:.0f}/s) "
              f"ok={self.stats['parse_ok']} rejected={self.stats['parse_error']} "
              f"findings={self.findings} (unique {len(self.saved)})")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Differential fuzzer for the fnlang parsers")
    parser.add_argument("--duration", type=float, help="Minutes to run (default: until Ctrl-C)")
    parser.add_argument("--iterations", type=int, help="Stop after this many inputs")
    parser.add_argument("--seed", type=int, help="Random seed (default: current time)")
    parser.add_argument("--findings-dir", type=Path, default=FINDINGS_DIR,
                        help="Directory for saved findings")
    args = parser.parse_args(argv)

    seed = int(time.time()) if args.seed is None else args.seed
    print(f"seed {seed}")
    fuzzer = Fuzzer(seed=seed, findings_dir=args.findings_dir)
    fuzzer.run(duration_minutes=args.duration, iterations=args.iterations)
    return 1 if fuzzer.findings else 0


if __name__ == "__main__":
    raise SystemExit(main())
